"""Root pytest configuration and shared fixtures."""

import itertools
import threading
from pathlib import Path
from typing import Any, Callable, List, Optional

import pytest

from stacklaunch.local.app_process import ServiceDescriptor
from stacklaunch.local.supervisor.registry import LiveRegistry


class FakeTimer:
    """Scheduled callback on a FakeClock."""

    def __init__(self, due: float, callback: Callable[..., Any], args: tuple):
        self.due = due
        self.callback = callback
        self.args = args
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeClock:
    """Virtual clock: sleeping advances time instantly and fires due timers."""

    def __init__(self, start: float = 100.0):
        self.current = start
        self.sleeps: List[float] = []
        self.timers: List[FakeTimer] = []

    def now(self) -> float:
        return self.current

    def sleep(self, seconds: float, interrupt: Optional[threading.Event] = None) -> bool:
        if interrupt is not None and interrupt.is_set():
            return False
        self.sleeps.append(seconds)
        self.advance(seconds)
        return not (interrupt is not None and interrupt.is_set())

    def call_later(self, seconds: float, callback: Callable[..., Any], *args: Any) -> FakeTimer:
        timer = FakeTimer(self.current + seconds, callback, args)
        self.timers.append(timer)
        return timer

    def advance(self, seconds: float) -> None:
        self.current += seconds
        for timer in sorted(self.timers, key=lambda t: t.due):
            if not timer.fired and not timer.cancelled and timer.due <= self.current:
                timer.fired = True
                timer.callback(*timer.args)


class FakePopen:
    """Stands in for subprocess.Popen; the process 'runs' until exit() is called."""

    _pids = itertools.count(4000)

    def __init__(self, args, shell=False, cwd=None, **kwargs):
        self.args = args
        self.shell = shell
        self.cwd = cwd
        self.kwargs = kwargs
        self.pid = next(self._pids)
        self.returncode = None
        self._exited = threading.Event()

    def poll(self):
        return self.returncode

    def wait(self, timeout=None):
        self._exited.wait(timeout)
        return self.returncode

    def exit(self, code: int) -> None:
        self.returncode = code
        self._exited.set()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry() -> LiveRegistry:
    return LiveRegistry()


@pytest.fixture
def fake_popen(monkeypatch) -> List[FakePopen]:
    """Replaces Popen in the launcher and returns the list of spawned fakes."""
    spawned: List[FakePopen] = []

    def _spawn(*args, **kwargs):
        proc = FakePopen(*args, **kwargs)
        spawned.append(proc)
        return proc

    monkeypatch.setattr("stacklaunch.local.supervisor.process_utils.subprocess.Popen", _spawn)
    yield spawned
    for proc in spawned:
        if proc.returncode is None:
            proc.exit(-15)


def make_descriptor(name: str, role: str = "agent", **kwargs) -> ServiceDescriptor:
    return ServiceDescriptor(name=name, command="node", args=(f"{name.lower()}.js",), role=role, **kwargs)


@pytest.fixture
def descriptor():
    """Factory fixture building agent descriptors that run `node <name>.js`."""
    return make_descriptor


@pytest.fixture
def base_dir(tmp_path) -> Path:
    return tmp_path
