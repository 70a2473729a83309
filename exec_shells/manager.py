from __future__ import annotations

import asyncio
import json
import logging
import signal
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import aiofiles

from .colors import ColorDecoder, ColorTransform
from .config import ExecConfig
from .errors import CommandNotFoundError
from .events import EventBus, EventType, ExecEvent
from .hooks import ExecLifecycleHooks, run_hook
from .lifecycle import LifecycleManager, LoopTimerScheduler, TimerScheduler
from .record import ColorPolicy, DisplayRoute, ExecCommand, Route
from .registry import ExecRegistry
from .router import OutputRouter
from .runner import PROCESS_ERROR, AsyncioProcessRunner, ProcessRunner, SpawnOptions
from .surfaces import ConsoleSurface, SurfaceDirectory

logger = logging.getLogger(__name__)


class ExecManager:
    """Runs external commands and tracks them until they are purged.

    Owns the registry for its whole life: build one at host startup and
    call `shutdown()` when the host stops.
    """

    def __init__(
        self,
        *,
        config: Optional[ExecConfig] = None,
        surfaces: Optional[SurfaceDirectory] = None,
        runner: Optional[ProcessRunner] = None,
        timers: Optional[TimerScheduler] = None,
        events: Optional[EventBus] = None,
        hooks: Optional[ExecLifecycleHooks] = None,
        color_transform: Optional[ColorTransform] = None,
        debug: int = 0,
    ) -> None:
        self.config = config or ExecConfig()
        self.surfaces = surfaces or SurfaceDirectory(ConsoleSurface())
        self.runner = runner or AsyncioProcessRunner()
        self.events = events or EventBus()
        self.debug = debug
        self._hooks = hooks
        self.registry = ExecRegistry(unhook=self.runner.unregister)
        self.registry.on_remove = self._on_remove
        self.router = OutputRouter(self.surfaces, ColorDecoder(color_transform))
        self.lifecycle = LifecycleManager(
            self.registry,
            self.router,
            self.surfaces,
            self.config,
            timers or LoopTimerScheduler(),
            events=self.events,
            hooks=hooks,
        )

    def _on_remove(self, record: ExecCommand) -> None:
        self.events.publish(ExecEvent(type=EventType.COMMAND_REMOVED, number=record.number))
        run_hook(self._hooks, "on_command_removed", record)

    # ------------------------------------------------------------------
    # Process callback

    def process_cb(
        self,
        number: int,
        return_code: int,
        out: Optional[Union[bytes, str]],
        err: Optional[Union[bytes, str]],
    ) -> None:
        """Entry point for the process runner: accumulate output, end on a terminal code."""
        record = self.registry.get(number)
        if record is None or record.end_time or record.finalizing:
            logger.debug("Ignoring late callback for command %d", number)
            return

        if self.debug >= 2:
            logger.debug(
                'process_cb: command="%s", rc=%d, out: %d bytes, err: %d bytes',
                record.command,
                return_code,
                len(out) if out else 0,
                len(err) if err else 0,
            )

        if return_code == PROCESS_ERROR:
            self.lifecycle.end_command(record, -1)
            return

        if out is not None:
            record.out.append(out)
        if err is not None:
            record.err.append(err)

        if return_code >= 0:
            self.lifecycle.end_command(record, return_code)

    # ------------------------------------------------------------------
    # Public methods

    async def run(
        self,
        command: str,
        *,
        name: Optional[str] = None,
        route: Optional[Route] = None,
        buffer_full_name: Optional[str] = None,
        line_numbers: bool = False,
        display_rc: Optional[bool] = None,
        color: Optional[ColorPolicy] = None,
        detached: bool = False,
        use_shell: bool = True,
        timeout: Optional[float] = None,
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> ExecCommand:
        if not command or not command.strip():
            raise ValueError("command must not be empty")
        record = self.registry.add(
            command,
            name=name,
            route=route or DisplayRoute(),
            buffer_full_name=buffer_full_name,
            line_numbers=line_numbers,
            display_rc=self.config.display_rc if display_rc is None else display_rc,
            color=color or self.config.default_color,
            detached=detached,
        )
        options = SpawnOptions(
            use_shell=use_shell,
            shell=self.config.shell,
            cwd=cwd,
            env=dict(env or {}),
            detached=detached,
            timeout=timeout,
        )
        number = record.number
        try:
            handle = await self.runner.spawn(
                command, options, lambda rc, out, err: self.process_cb(number, rc, out, err)
            )
        except BaseException:
            # includes cancellation: nothing will ever end this record
            logger.debug("Spawn of command %d failed, removing it", number)
            self.registry.remove(record)
            raise
        if record.removed or record.end_time:
            # ended or deleted while spawning
            if record.removed:
                self.runner.unregister(handle)
            return record
        record.hook = handle
        record.pid = handle.pid
        self.events.publish(
            ExecEvent(type=EventType.COMMAND_STARTED, number=record.number, data=record.to_payload())
        )
        run_hook(self._hooks, "on_command_started", record)
        return record

    def search_by_id(self, ident: str) -> Optional[ExecCommand]:
        return self.registry.search_by_id(str(ident))

    def get_command(self, ident: str) -> ExecCommand:
        record = self.search_by_id(ident)
        if record is None:
            raise CommandNotFoundError(str(ident))
        return record

    def list_commands(self) -> List[ExecCommand]:
        return list(self.registry)

    def kill(self, ident: str, sig: int = signal.SIGKILL) -> bool:
        """Send `sig` to a running command; False when it is not running."""
        record = self.get_command(ident)
        if record.hook is None:
            return False
        return self.runner.send_signal(record.hook, sig)

    def delete(self, ident: str) -> ExecCommand:
        record = self.get_command(ident)
        self.registry.remove(record)
        return record

    def delete_all(self) -> int:
        count = len(self.registry)
        self.registry.remove_all()
        return count

    def shutdown(self) -> None:
        """Remove every command, running or not, without waiting."""
        self.registry.remove_all()

    def print_log(self) -> None:
        self.registry.print_log()

    async def dump(self, path: Union[str, Path]) -> Path:
        """Write a JSON snapshot of all commands (debug dump)."""
        target = Path(path)
        await asyncio.to_thread(target.parent.mkdir, parents=True, exist_ok=True)
        tmp_path = target.with_name(target.name + ".tmp")
        data: Dict[str, Any] = {"count": self.registry.count, "commands": self.registry.snapshot()}
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as fh:
            await fh.write(json.dumps(data, indent=2))
        await asyncio.to_thread(tmp_path.replace, target)
        return target
