from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .record import ExecCommand

logger = logging.getLogger(__name__)

MaybeAwaitable = Any


@dataclass(frozen=True)
class ExecLifecycleHooks:
    """Optional callbacks for integrating ExecManager with host systems.

    Callbacks may be sync or async; exceptions are swallowed (best-effort).
    """

    # Called after the process was spawned and its record stored.
    on_command_started: Optional[Callable[[ExecCommand], MaybeAwaitable]] = None

    # Called once the command is finalized and its output routed.
    on_command_finished: Optional[Callable[[ExecCommand], MaybeAwaitable]] = None

    # Called when the record leaves the registry (purge timer, delete, shutdown).
    on_command_removed: Optional[Callable[[ExecCommand], MaybeAwaitable]] = None


def _fire_hook(result: Any) -> None:
    """Schedule an awaitable hook result; never blocks core flow."""
    if result is None or not inspect.isawaitable(result):
        return
    try:
        asyncio.ensure_future(result, loop=asyncio.get_running_loop())
    except RuntimeError:
        # no running loop: close coroutines so they do not warn on GC
        if inspect.iscoroutine(result):
            result.close()
        logger.debug("Dropping async hook result: no running event loop")


def run_hook(hooks: Optional[ExecLifecycleHooks], name: str, record: ExecCommand) -> None:
    hook = getattr(hooks, name, None) if hooks else None
    if not hook:
        return
    try:
        _fire_hook(hook(record))
    except Exception:
        logger.debug("Hook %s failed for command %d", name, record.number, exc_info=True)
