from __future__ import annotations

import logging
from typing import List, Optional

from .colors import ColorDecoder
from .record import BufferRoute, ColorPolicy, EventRoute, ExecCommand, PipeRoute
from .surfaces import DisplaySurface, SurfaceDirectory

logger = logging.getLogger(__name__)

LINE_PLACEHOLDER = "$line"


def split_output_lines(text: str) -> List[str]:
    """Split on newlines, ignoring the empty line after a trailing newline."""
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def render_pipe_command(template: str, line: str) -> str:
    if LINE_PLACEHOLDER in template:
        return template.replace(LINE_PLACEHOLDER, line, 1)
    return f"{template} {line}"


class OutputRouter:
    def __init__(self, surfaces: SurfaceDirectory, decoder: Optional[ColorDecoder] = None) -> None:
        self.surfaces = surfaces
        self.decoder = decoder or ColorDecoder()

    def route(self, record: ExecCommand, surface: Optional[DisplaySurface], out: bool) -> None:
        """Send the stdout (`out`=True) or stderr buffer of `record` to its destination."""
        if isinstance(record.route, EventRoute):
            raise ValueError(f"command {record.number} reports through an event, not a surface")

        buffer = record.out if out else record.err
        if not buffer:
            return

        # buffered output is never sent to a fallback surface
        if isinstance(record.route, BufferRoute) and surface is None:
            logger.debug(
                "Dropping output of command %d: surface %r not found",
                record.number,
                record.buffer_full_name,
            )
            return

        text = self.decoder.decode(record, buffer.text())
        if not text:
            return

        target = surface or self.surfaces.core
        tags = ("exec_stdout" if out else "exec_stderr", f"exec_cmd_{record.tag_id}")
        # decoded display text is rich markup, anything else is printed as-is
        markup = record.color == ColorPolicy.DECODE
        for line_nb, line in enumerate(split_output_lines(text), start=1):
            if isinstance(record.route, PipeRoute):
                target.command(render_pipe_command(record.route.template, line))
            elif isinstance(record.route, BufferRoute):
                if record.line_numbers:
                    target.command(f"{line_nb}. {line}")
                else:
                    target.command(line if line else " ")
            else:
                prefix = f"{line_nb}\t" if record.line_numbers else " \t"
                target.print_tags(tags, f"{prefix}{line}", markup=markup)
