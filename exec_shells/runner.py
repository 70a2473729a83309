from __future__ import annotations

import asyncio
import logging
import os
import shlex
import signal
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)

# return_code values passed to a ProcessCallback besides real exit codes (>= 0)
PROCESS_RUNNING = -1
PROCESS_ERROR = -2

READ_CHUNK_SIZE = 64 * 1024

ProcessCallback = Callable[[int, Optional[bytes], Optional[bytes]], None]


@dataclass
class SpawnOptions:
    use_shell: bool = True
    shell: str = "sh"
    cwd: Optional[str] = None
    env: Dict[str, str] = field(default_factory=dict)
    # stdout/stderr go to /dev/null and the process gets its own session
    detached: bool = False
    # seconds; the process is killed and reported as an error when exceeded
    timeout: Optional[float] = None


@dataclass
class ProcessHandle:
    command: str
    pid: int = 0
    active: bool = True
    process: Optional[asyncio.subprocess.Process] = None
    task: Optional[asyncio.Task] = None


class ProcessRunner(Protocol):
    async def spawn(self, command: str, options: SpawnOptions, callback: ProcessCallback) -> ProcessHandle:  # pragma: no cover
        raise NotImplementedError

    def unregister(self, handle: ProcessHandle) -> None:  # pragma: no cover
        raise NotImplementedError

    def send_signal(self, handle: ProcessHandle, sig: int) -> bool:  # pragma: no cover
        raise NotImplementedError


def _build_argv(command: str, options: SpawnOptions) -> List[str]:
    if options.use_shell:
        return [options.shell, "-c", command]
    argv = shlex.split(command)
    if not argv:
        raise ValueError("command must contain at least one argument")
    return argv


class AsyncioProcessRunner:
    """Runs commands with asyncio subprocesses and streams their output back.

    The callback gets (PROCESS_RUNNING, out, err) for each chunk read, then
    exactly one terminal call with the exit code, or PROCESS_ERROR when the
    process could not be started, was killed by a signal or timed out.
    """

    def __init__(self, *, chunk_size: int = READ_CHUNK_SIZE) -> None:
        self.chunk_size = chunk_size

    async def spawn(self, command: str, options: SpawnOptions, callback: ProcessCallback) -> ProcessHandle:
        handle = ProcessHandle(command=command)
        loop = asyncio.get_running_loop()
        capture = asyncio.subprocess.DEVNULL if options.detached else asyncio.subprocess.PIPE
        env = None
        if options.env:
            env = os.environ.copy()
            env.update(options.env)
        try:
            argv = _build_argv(command, options)
            proc = await asyncio.create_subprocess_exec(
                *argv,
                cwd=options.cwd,
                env=env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=capture,
                stderr=capture,
                start_new_session=options.detached,
            )
        except (OSError, ValueError) as exc:
            logger.warning("Unable to run %r: %s", command, exc)
            # report strictly after spawn() returns, like any other callback
            loop.call_soon(self._notify, handle, callback, PROCESS_ERROR, None, None)
            return handle

        handle.process = proc
        handle.pid = proc.pid
        handle.task = asyncio.create_task(self._watch(handle, options, callback))
        logger.debug("Spawned %r (pid %d)", command, proc.pid)
        return handle

    def _notify(
        self,
        handle: ProcessHandle,
        callback: ProcessCallback,
        return_code: int,
        out: Optional[bytes],
        err: Optional[bytes],
    ) -> None:
        if not handle.active:
            return
        if return_code != PROCESS_RUNNING:
            handle.active = False
        try:
            callback(return_code, out, err)
        except Exception:
            logger.exception("Process callback failed for %r", handle.command)

    async def _pump(self, handle: ProcessHandle, stream: asyncio.StreamReader, callback: ProcessCallback, is_out: bool) -> None:
        while True:
            chunk = await stream.read(self.chunk_size)
            if not chunk:
                return
            if is_out:
                self._notify(handle, callback, PROCESS_RUNNING, chunk, None)
            else:
                self._notify(handle, callback, PROCESS_RUNNING, None, chunk)

    async def _run_to_exit(self, handle: ProcessHandle, callback: ProcessCallback) -> int:
        proc = handle.process
        pumps = []
        if proc.stdout is not None:
            pumps.append(self._pump(handle, proc.stdout, callback, True))
        if proc.stderr is not None:
            pumps.append(self._pump(handle, proc.stderr, callback, False))
        await asyncio.gather(*pumps)
        return await proc.wait()

    async def _watch(self, handle: ProcessHandle, options: SpawnOptions, callback: ProcessCallback) -> None:
        try:
            if options.timeout is not None:
                return_code = await asyncio.wait_for(self._run_to_exit(handle, callback), options.timeout)
            else:
                return_code = await self._run_to_exit(handle, callback)
        except asyncio.TimeoutError:
            logger.info("Command %r timed out after %ss", handle.command, options.timeout)
            self._kill(handle)
            self._notify(handle, callback, PROCESS_ERROR, None, None)
            return
        # killed by a signal: asyncio reports -signum
        if return_code < 0:
            return_code = PROCESS_ERROR
        self._notify(handle, callback, return_code, None, None)

    def _kill(self, handle: ProcessHandle) -> None:
        proc = handle.process
        if proc is None or proc.returncode is not None:
            return
        try:
            proc.kill()
        except ProcessLookupError:
            pass

    def unregister(self, handle: ProcessHandle) -> None:
        """Stop reporting for `handle` and kill its process if still running."""
        if not handle.active and handle.task is None:
            return
        handle.active = False
        self._kill(handle)
        task, handle.task = handle.task, None
        if task is not None and not task.done():
            task.cancel()

    def send_signal(self, handle: ProcessHandle, sig: int = signal.SIGKILL) -> bool:
        proc = handle.process
        if proc is None or proc.returncode is not None:
            return False
        try:
            proc.send_signal(sig)
        except ProcessLookupError:
            return False
        return True
