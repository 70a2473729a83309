"""Exec Shells - registry and output pipeline for external commands."""

from .manager import ExecManager
from .record import (
    BufferRoute,
    ColorPolicy,
    CommandState,
    DisplayRoute,
    EventRoute,
    ExecCommand,
    PipeRoute,
    Route,
)
from .buffer import OutputBuffer
from .registry import ExecRegistry
from .router import OutputRouter
from .colors import ColorDecoder, ColorTransform, RichColorTransform
from .lifecycle import LifecycleManager, LoopTimerScheduler, TimerScheduler
from .runner import (
    PROCESS_ERROR,
    PROCESS_RUNNING,
    AsyncioProcessRunner,
    ProcessHandle,
    ProcessRunner,
    SpawnOptions,
)
from .surfaces import ConsoleSurface, DisplaySurface, SurfaceDirectory
from .events import EventBus, ExecEvent, EventType
from .hooks import ExecLifecycleHooks
from .config import ExecConfig, load_config
from .errors import CommandNotFoundError, ExecAllocationError, ExecConfigError, ExecError

__all__ = [
    "ExecManager",
    "ExecCommand",
    "ExecRegistry",
    "OutputBuffer",
    "OutputRouter",
    "ColorDecoder",
    "ColorTransform",
    "RichColorTransform",
    "ColorPolicy",
    "CommandState",
    "Route",
    "DisplayRoute",
    "BufferRoute",
    "PipeRoute",
    "EventRoute",
    "LifecycleManager",
    "LoopTimerScheduler",
    "TimerScheduler",
    "PROCESS_ERROR",
    "PROCESS_RUNNING",
    "AsyncioProcessRunner",
    "ProcessHandle",
    "ProcessRunner",
    "SpawnOptions",
    "ConsoleSurface",
    "DisplaySurface",
    "SurfaceDirectory",
    "EventBus",
    "ExecEvent",
    "EventType",
    "ExecLifecycleHooks",
    "ExecConfig",
    "load_config",
    "ExecError",
    "ExecAllocationError",
    "CommandNotFoundError",
    "ExecConfigError",
]
