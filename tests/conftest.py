from typing import Any, Callable, List, Optional, Tuple

import pytest

from exec_shells import ExecConfig, ExecManager, SurfaceDirectory
from exec_shells.runner import ProcessHandle, SpawnOptions

CORE = "core.main"
CHANNEL = "irc.libera.#test"


class FakeSurface:
    def __init__(self, full_name: str) -> None:
        self.full_name = full_name
        self.printed: List[Tuple[Tuple[str, ...], str]] = []
        self.markup: List[bool] = []
        self.commands: List[str] = []

    def print_tags(self, tags, message: str, *, markup: bool = False) -> None:
        self.printed.append((tuple(tags), message))
        self.markup.append(markup)

    def command(self, text: str) -> None:
        self.commands.append(text)

    @property
    def messages(self) -> List[str]:
        return [message for _, message in self.printed]


class FakeTimer:
    def __init__(self, delay: float, callback: Callable[[], Any]) -> None:
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeTimers:
    def __init__(self) -> None:
        self.timers: List[FakeTimer] = []

    def call_later(self, delay: float, callback: Callable[[], Any]) -> FakeTimer:
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    def fire_all(self) -> None:
        for timer in list(self.timers):
            if not timer.cancelled:
                timer.callback()


class FakeRunner:
    def __init__(self) -> None:
        self.spawned: List[Tuple[str, SpawnOptions, Callable]] = []
        self.unregistered: List[ProcessHandle] = []
        self.signals: List[Tuple[ProcessHandle, int]] = []
        self._next_pid = 1000

    async def spawn(self, command: str, options: SpawnOptions, callback) -> ProcessHandle:
        self._next_pid += 1
        self.spawned.append((command, options, callback))
        return ProcessHandle(command=command, pid=self._next_pid)

    def unregister(self, handle: ProcessHandle) -> None:
        handle.active = False
        self.unregistered.append(handle)

    def send_signal(self, handle: ProcessHandle, sig: int) -> bool:
        self.signals.append((handle, sig))
        return handle.active

    def callback(self, index: int = -1) -> Callable:
        return self.spawned[index][2]


@pytest.fixture
def core_surface() -> FakeSurface:
    return FakeSurface(CORE)


@pytest.fixture
def channel_surface() -> FakeSurface:
    return FakeSurface(CHANNEL)


@pytest.fixture
def surfaces(core_surface, channel_surface) -> SurfaceDirectory:
    return SurfaceDirectory(core_surface, [channel_surface])


@pytest.fixture
def timers() -> FakeTimers:
    return FakeTimers()


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def config() -> ExecConfig:
    return ExecConfig(purge_delay=0)


@pytest.fixture
def manager(config, surfaces, runner, timers) -> ExecManager:
    return ExecManager(config=config, surfaces=surfaces, runner=runner, timers=timers)


def add_command(manager: ExecManager, command: str = "ls", **options: Any):
    """Register a command without spawning it (as if the runner was already started)."""
    options.setdefault("buffer_full_name", CHANNEL)
    return manager.registry.add(command, **options)
