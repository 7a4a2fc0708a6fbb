"""Shared fixtures for term-party tests."""

import asyncio
import os

import pytest

import term_party.config as config
from term_party.host import SessionHost
from term_party.persistence import PersistenceStore
from term_party.types import ExitEvent


class FakeChild:
    """Stands in for PtyChild: output goes through a real non-blocking pipe
    so the supervisor's fd watching works unchanged.

    ignore_hangup: SIGHUP does nothing (like `trap "" HUP`).
    hold_open: after SIGKILL the output pipe stays open, as when a
    descendant keeps the terminal.
    """

    def __init__(self, argv, cwd, env, cols, rows):
        self.argv = list(argv)
        self.cwd = cwd
        self.env = dict(env)
        self.sizes = [(cols, rows)]
        self.written: list[bytes] = []
        self.hangups = 0
        self.kills = 0
        self.ignore_hangup = False
        self.hold_open = False
        self.hangup_exit_code: int | None = None
        self.exit_code: int | None = None
        self.reaped = False
        self.fd, self._write_fd = os.pipe()
        os.set_blocking(self.fd, False)

    def read(self, size):
        try:
            data = os.read(self.fd, size)
        except BlockingIOError:
            return b""
        if not data:
            raise EOFError
        return data

    def write(self, data):
        self.written.append(data)

    def resize(self, cols, rows):
        self.sizes.append((cols, rows))

    def hangup(self):
        self.hangups += 1
        if not self.ignore_hangup:
            self.finish(self.hangup_exit_code)

    def force_kill(self):
        self.kills += 1
        if self.hold_open:
            self.exit_code = None
        else:
            self.finish(None)

    def reap(self):
        self.reaped = True
        os.close(self.fd)
        if self._write_fd is not None:
            os.close(self._write_fd)
            self._write_fd = None
        return self.exit_code

    # --- Test controls ---

    def emit(self, data: bytes) -> None:
        os.write(self._write_fd, data)

    def finish(self, exit_code: int | None = 0) -> None:
        if self._write_fd is None:
            return
        self.exit_code = exit_code
        os.close(self._write_fd)
        self._write_fd = None


class FakeChildFactory:
    """Records every child it creates; set fail_with to make spawns fail."""

    def __init__(self):
        self.children: list[FakeChild] = []
        self.fail_with: Exception | None = None

    def __call__(self, argv, cwd, env, cols, rows):
        if self.fail_with is not None:
            raise self.fail_with
        child = FakeChild(argv, cwd, env, cols, rows)
        self.children.append(child)
        return child

    @property
    def last(self) -> FakeChild:
        return self.children[-1]


async def wait_for_exit(subscription, session_id: int, timeout: float = 5.0) -> ExitEvent:
    """Consume events until the exit event for `session_id` arrives."""

    async def _wait():
        async for event in subscription:
            if isinstance(event, ExitEvent) and event.id == session_id:
                return event
        raise AssertionError(f"subscription closed before session {session_id} exited")

    return await asyncio.wait_for(_wait(), timeout)


async def wait_until(predicate, timeout: float = 5.0, interval: float = 0.01) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)


@pytest.fixture
def data_dir(tmp_path):
    """Temporary data directory with config initialised."""
    d = tmp_path / "data"
    d.mkdir()
    old = config._data_dir
    config.init(d)
    config._settings_cache = None
    config._settings_mtime = 0.0
    yield d
    config._data_dir = old
    config._settings_cache = None
    config._settings_mtime = 0.0


@pytest.fixture
def workdirs(tmp_path):
    """Two working directories, /…/a and /…/b."""
    a = tmp_path / "a"
    b = tmp_path / "b"
    a.mkdir()
    b.mkdir()
    return a, b


@pytest.fixture
def child_factory():
    return FakeChildFactory()


@pytest.fixture
def state_dir(tmp_path):
    return tmp_path / "state"


@pytest.fixture
async def host(tmp_path, state_dir, child_factory):
    """A SessionHost backed by fake children and a temp state dir."""
    store = PersistenceStore(state_dir, debounce=0.01)
    h = SessionHost(
        store,
        shell="/bin/sh -i",
        scratchpad=str(tmp_path / "scratchpad"),
        env={"PATH": os.environ.get("PATH", "")},
        child_factory=child_factory,
        kill_grace=0.1,
        home=str(tmp_path),
    )
    yield h
    await h.shutdown()
