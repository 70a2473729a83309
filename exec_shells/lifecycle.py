from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Optional, Protocol

from .colors import ColorDecoder
from .config import ExecConfig
from .events import EventBus, EventType, ExecEvent
from .hooks import ExecLifecycleHooks, run_hook
from .record import DisplayRoute, EventRoute, ExecCommand
from .registry import ExecRegistry
from .router import OutputRouter
from .surfaces import SurfaceDirectory

logger = logging.getLogger(__name__)

PLUGIN_NAME = "exec"


class TimerHandle(Protocol):
    def cancel(self) -> None:  # pragma: no cover
        raise NotImplementedError


class TimerScheduler(Protocol):
    """One-shot deferred callbacks."""

    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle:  # pragma: no cover
        raise NotImplementedError


class LoopTimerScheduler:
    """Timers on the running asyncio loop (or an explicit one)."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], Any]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)


def purge_delay_ms(delay_seconds: int) -> Optional[int]:
    """Milliseconds before removal, None to keep the command forever.

    The extra millisecond keeps a zero delay from removing the command
    inside the callback that ended it.
    """
    if delay_seconds < 0:
        return None
    return 1 + 1000 * delay_seconds


class LifecycleManager:
    def __init__(
        self,
        registry: ExecRegistry,
        router: OutputRouter,
        surfaces: SurfaceDirectory,
        config: ExecConfig,
        timers: TimerScheduler,
        *,
        events: Optional[EventBus] = None,
        hooks: Optional[ExecLifecycleHooks] = None,
    ) -> None:
        self.registry = registry
        self.router = router
        self.surfaces = surfaces
        self.config = config
        self.timers = timers
        self.events = events or EventBus()
        self.hooks = hooks

    @property
    def decoder(self) -> ColorDecoder:
        return self.router.decoder

    def _send_signal_event(self, record: ExecCommand) -> None:
        data = {
            "command": record.command,
            "number": str(record.number),
            "name": record.name,
            "out": self.decoder.decode(record, record.out.text()),
            "err": self.decoder.decode(record, record.err.text()),
        }
        self.events.publish(
            ExecEvent(type=EventType.SIGNAL, number=record.number, data=data, channel=record.hsignal)
        )

    def _display_rc(self, record: ExecCommand, surface, return_code: int) -> None:
        target = surface or self.surfaces.core
        if return_code >= 0:
            message = (
                f'{PLUGIN_NAME}: end of command {record.number} ("{record.command}"), '
                f"return code: {return_code}"
            )
        else:
            message = f'{PLUGIN_NAME}: unexpected end of command {record.number} ("{record.command}")'
        target.print_tags(("exec_rc",), message)

    def end_command(self, record: ExecCommand, return_code: int) -> None:
        """Route the output of a finished command and schedule its removal."""
        record.finalizing = True
        if isinstance(record.route, EventRoute):
            self._send_signal_event(record)
        else:
            surface = self.surfaces.search(record.buffer_full_name)
            self.router.route(record, surface, True)
            self.router.route(record, surface, False)

            # only for plain display: piped/buffered output must stay clean
            if record.display_rc and not record.detached and isinstance(record.route, DisplayRoute):
                self._display_rc(record, surface, return_code)

        record.hook = None
        record.pid = 0
        record.end_time = int(time.time())
        record.return_code = return_code
        record.finalizing = False
        logger.debug("Command %d ended, return code %d", record.number, return_code)

        self.events.publish(
            ExecEvent(type=EventType.COMMAND_FINISHED, number=record.number, data=record.to_payload())
        )
        run_hook(self.hooks, "on_command_finished", record)

        self.schedule_purge(record)

    def schedule_purge(self, record: ExecCommand) -> None:
        delay_ms = purge_delay_ms(self.config.purge_delay)
        if delay_ms is None:
            return
        if record.purge_timer is not None:
            record.purge_timer.cancel()
        number = record.number
        record.purge_timer = self.timers.call_later(
            delay_ms / 1000.0, lambda: self._purge_cb(number, record)
        )

    def _purge_cb(self, number: int, record: ExecCommand) -> None:
        # the command may have been deleted, and its number reused, meanwhile
        if self.registry.get(number) is not record:
            return
        record.purge_timer = None
        self.registry.remove(record)
