from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Optional, Protocol

from rich.console import Console
from rich.errors import MarkupError
from rich.text import Text

logger = logging.getLogger(__name__)

CORE_SURFACE = "core.main"


class DisplaySurface(Protocol):
    """Destination for routed output.

    `print_tags` shows a line tagged for filtering, literally unless `markup`
    says it holds rich console markup; `command` behaves as if the text had
    been typed on the surface (a follow-up command or a plain message).
    """

    full_name: str

    def print_tags(self, tags: Iterable[str], message: str, *, markup: bool = False) -> None:  # pragma: no cover
        raise NotImplementedError

    def command(self, text: str) -> None:  # pragma: no cover
        raise NotImplementedError


class SurfaceDirectory:
    """Resolves surface full names; never creates a surface on lookup."""

    def __init__(self, core: DisplaySurface, surfaces: Optional[Iterable[DisplaySurface]] = None) -> None:
        self.core = core
        self._surfaces: Dict[str, DisplaySurface] = {core.full_name: core}
        for surface in surfaces or []:
            self.register(surface)

    def register(self, surface: DisplaySurface) -> None:
        self._surfaces[surface.full_name] = surface

    def unregister(self, full_name: str) -> None:
        if full_name == self.core.full_name:
            raise ValueError("the core surface cannot be unregistered")
        self._surfaces.pop(full_name, None)

    def search(self, full_name: Optional[str]) -> Optional[DisplaySurface]:
        if not full_name:
            return None
        return self._surfaces.get(full_name)

    def names(self) -> List[str]:
        return list(self._surfaces)


class ConsoleSurface:
    """Terminal surface backed by a rich Console."""

    def __init__(
        self,
        full_name: str = CORE_SURFACE,
        *,
        console: Optional[Console] = None,
        command_handler: Optional[Callable[["ConsoleSurface", str], None]] = None,
    ) -> None:
        self.full_name = full_name
        self.console = console or Console(highlight=False)
        self.command_handler = command_handler

    def print_tags(self, tags: Iterable[str], message: str, *, markup: bool = False) -> None:
        logger.debug("print on %s [%s]: %r", self.full_name, ",".join(tags), message)
        if markup:
            try:
                self.console.print(Text.from_markup(message))
                return
            except MarkupError:
                logger.debug("Invalid markup on %s, printing as text", self.full_name)
        if "\x1b" in message:
            self.console.print(Text.from_ansi(message))
        else:
            self.console.print(Text(message))

    def command(self, text: str) -> None:
        if self.command_handler:
            self.command_handler(self, text)
            return
        self.console.print(Text(f"> {text}"))
