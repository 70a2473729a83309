from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

from .buffer import OutputBuffer


class ColorPolicy(Enum):
    ANSI = "ansi"
    DECODE = "decode"
    STRIP = "strip"

    @classmethod
    def search(cls, name: Optional[str]) -> Optional["ColorPolicy"]:
        """Case-insensitive lookup by name, None if unknown."""
        if not name:
            return None
        lowered = name.strip().lower()
        for policy in cls:
            if policy.value == lowered:
                return policy
        return None


class CommandState(Enum):
    RUNNING = "running"
    # set while output is routed, so only surfaces observe it
    FINALIZING = "finalizing"
    FINALIZED = "finalized"
    REMOVED = "removed"


@dataclass(frozen=True)
class DisplayRoute:
    """Tagged lines on the target surface (default)."""

    kind = "display"


@dataclass(frozen=True)
class BufferRoute:
    """Each line is sent as text to the target surface."""

    kind = "buffer"


@dataclass(frozen=True)
class PipeRoute:
    """Each line is substituted into `template` and re-injected as a command."""

    template: str
    kind = "pipe"


@dataclass(frozen=True)
class EventRoute:
    """Whole output is published once as a structured event on channel `name`."""

    name: str
    kind = "event"


Route = Union[DisplayRoute, BufferRoute, PipeRoute, EventRoute]


@dataclass
class ExecCommand:
    """One external command tracked by the registry."""

    number: int
    command: str
    name: Optional[str] = None
    route: Route = field(default_factory=DisplayRoute)
    buffer_full_name: Optional[str] = None
    line_numbers: bool = False
    display_rc: bool = True
    color: ColorPolicy = ColorPolicy.ANSI
    detached: bool = False
    hook: Any = None
    pid: int = 0
    start_time: int = field(default_factory=lambda: int(time.time()))
    end_time: int = 0
    out: OutputBuffer = field(default_factory=OutputBuffer)
    err: OutputBuffer = field(default_factory=OutputBuffer)
    return_code: int = -1
    purge_timer: Any = None
    finalizing: bool = False
    removed: bool = False

    @property
    def output_to_buffer(self) -> bool:
        return isinstance(self.route, BufferRoute)

    @property
    def pipe_command(self) -> Optional[str]:
        return self.route.template if isinstance(self.route, PipeRoute) else None

    @property
    def hsignal(self) -> Optional[str]:
        return self.route.name if isinstance(self.route, EventRoute) else None

    @property
    def state(self) -> CommandState:
        if self.removed:
            return CommandState.REMOVED
        if self.end_time:
            return CommandState.FINALIZED
        if self.finalizing:
            return CommandState.FINALIZING
        return CommandState.RUNNING

    @property
    def tag_id(self) -> str:
        return self.name if self.name else str(self.number)

    def to_payload(self, *, include_output: bool = False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "number": self.number,
            "name": self.name,
            "command": self.command,
            "state": self.state.value,
            "route": self.route.kind,
            "pipe_command": self.pipe_command,
            "hsignal": self.hsignal,
            "buffer_full_name": self.buffer_full_name,
            "line_numbers": self.line_numbers,
            "display_rc": self.display_rc,
            "color": self.color.value,
            "detached": self.detached,
            "pid": self.pid,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "out_size": self.out.size,
            "err_size": self.err.size,
            "return_code": self.return_code,
        }
        if include_output:
            payload["out"] = self.out.text()
            payload["err"] = self.err.text()
        return payload
