from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Tuple

from rich.color import ColorSystem, ColorType
from rich.style import Style
from rich.text import Text

from .record import ColorPolicy, ExecCommand

logger = logging.getLogger(__name__)

# Variant used when lines end up as text typed into a surface (buffer/pipe).
VARIANT_COMMAND = "irc_color_decode_ansi"
# Variant used for lines printed directly on a surface.
VARIANT_DISPLAY = "color_decode_ansi"

# ANSI standard color index -> mIRC color code
_ANSI_TO_IRC = (1, 5, 3, 7, 2, 6, 10, 15, 14, 4, 9, 8, 12, 13, 11, 0)

IRC_BOLD = "\x02"
IRC_COLOR = "\x03"
IRC_RESET = "\x0f"
IRC_REVERSE = "\x16"
IRC_ITALIC = "\x1d"
IRC_UNDERLINE = "\x1f"


class ColorTransform(Protocol):
    """Markup transform collaborator.

    `variant` is one of VARIANT_COMMAND / VARIANT_DISPLAY; `keep_colors`
    selects decoding (True) or stripping (False).
    """

    def transform(self, variant: str, keep_colors: bool, text: str) -> Optional[str]:  # pragma: no cover
        raise NotImplementedError


def _irc_color(color) -> Optional[int]:
    if color is None or color.type == ColorType.DEFAULT:
        return None
    if color.type not in (ColorType.STANDARD, ColorType.EIGHT_BIT) or (color.number or 0) > 15:
        color = color.downgrade(ColorSystem.STANDARD)
    if color.number is None or color.number > 15:
        return None
    return _ANSI_TO_IRC[color.number]


def _irc_codes(style: Style) -> str:
    codes = ""
    if style.bold:
        codes += IRC_BOLD
    if style.italic:
        codes += IRC_ITALIC
    if style.underline:
        codes += IRC_UNDERLINE
    if style.reverse:
        codes += IRC_REVERSE
    fg = _irc_color(style.color)
    bg = _irc_color(style.bgcolor)
    if fg is not None:
        codes += f"{IRC_COLOR}{fg:02d}"
        if bg is not None:
            codes += f",{bg:02d}"
    elif bg is not None:
        # mIRC has no background-only form; pair it with the default foreground
        codes += f"{IRC_COLOR}99,{bg:02d}"
    return codes


def _styled_runs(text: Text) -> List[Tuple[str, Style]]:
    plain = text.plain
    bounds = {0, len(plain)}
    for span in text.spans:
        bounds.add(span.start)
        bounds.add(span.end)
    edges = sorted(b for b in bounds if 0 <= b <= len(plain))
    runs: List[Tuple[str, Style]] = []
    for start, end in zip(edges, edges[1:]):
        styles = []
        for span in text.spans:
            if span.start <= start and span.end >= end:
                style = span.style
                styles.append(Style.parse(style) if isinstance(style, str) else style)
        runs.append((plain[start:end], Style.combine(styles) if styles else Style.null()))
    return runs


def ansi_to_irc(raw: str) -> str:
    """Convert ANSI SGR sequences into mIRC control codes."""
    out = []
    for chunk, style in _styled_runs(Text.from_ansi(raw)):
        codes = _irc_codes(style)
        if codes:
            out.append(f"{codes}{chunk}{IRC_RESET}")
        else:
            out.append(chunk)
    return "".join(out)


def ansi_to_markup(raw: str) -> str:
    """Convert ANSI SGR sequences into rich console markup."""
    return Text.from_ansi(raw).markup


def strip_ansi(raw: str) -> str:
    return Text.from_ansi(raw).plain


class RichColorTransform:
    """Default transform built on rich's ANSI decoder."""

    def transform(self, variant: str, keep_colors: bool, text: str) -> Optional[str]:
        if not keep_colors:
            return strip_ansi(text)
        if variant == VARIANT_COMMAND:
            return ansi_to_irc(text)
        if variant == VARIANT_DISPLAY:
            return ansi_to_markup(text)
        raise ValueError(f"unknown color transform variant {variant!r}")


class ColorDecoder:
    def __init__(self, transform: Optional[ColorTransform] = None) -> None:
        self.transform = transform or RichColorTransform()

    def decode(self, record: ExecCommand, text: Optional[str]) -> Optional[str]:
        """Return `text` as-is, decoded or stripped according to `record.color`.

        None means "nothing to show" (no input, or the transform failed).
        """
        if text is None:
            return None
        if record.color == ColorPolicy.ANSI:
            return text
        variant = VARIANT_COMMAND if (record.output_to_buffer or record.pipe_command) else VARIANT_DISPLAY
        try:
            return self.transform.transform(variant, record.color == ColorPolicy.DECODE, text)
        except Exception:
            logger.exception("Color transform %s failed for command %d", variant, record.number)
            return None
