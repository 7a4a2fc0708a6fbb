"""Process supervisor — one child process per session.

spawn() launches an interactive shell on a pseudo-terminal, registers the
session and starts two tasks for it:

  pump    — waits for the master fd to become readable, reads a chunk,
            feeds the session's tail buffer and the event channel. At end
            of output it reaps the child off-loop and calls on_exit().
  feeder  — drains the session's input queue into the terminal in a worker
            thread, so a child that stops reading never blocks the loop.

kill() deregisters eagerly and sends SIGHUP; it never waits for the child.
A stopper task escalates to SIGKILL if the child outlives the grace period,
and reaps it directly if its terminal never reaches end of output. The
exit is recorded either way, and on_exit() runs exactly once per session.
"""

from __future__ import annotations

import asyncio
import os
import shlex
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .child import PtyChild
from .config import SCRATCHPAD_ENV_VAR
from .errors import SpawnError
from .events import EventChannel
from .exit_history import ExitHistory
from .logging_config import get_logger
from .names import normalize_path
from .sessions import SessionRegistry
from .tail_buffer import DEFAULT_TAIL_BYTES, TailBuffer
from .types import ExitRecord, LiveSession, SessionDescriptor

logger = get_logger(__name__)

READ_CHUNK = 65536
DEFAULT_COLS = 80
DEFAULT_ROWS = 24
KILL_GRACE = 2.0  # Seconds between SIGHUP and SIGKILL, and again before a forced reap
INPUT_QUEUE_MAX = 256  # Pending input chunks per session

ChildFactory = Callable[..., Any]


@dataclass
class _Child:
    """Supervisor-private bookkeeping for a spawned, not yet reaped child."""

    session: LiveSession
    process: Any
    inputs: asyncio.Queue = field(default_factory=lambda: asyncio.Queue(INPUT_QUEUE_MAX))
    pump: asyncio.Task | None = None
    feeder: asyncio.Task | None = None
    stopper: asyncio.Task | None = None
    reaping: bool = False


class ProcessSupervisor:
    """Owns every child process handle and is the only writer of tail buffers."""

    def __init__(
        self,
        registry: SessionRegistry,
        history: ExitHistory,
        channel: EventChannel,
        *,
        shell: str = "/bin/bash",
        scratchpad: str | None = None,
        env: Mapping[str, str] | None = None,
        term: str = "xterm-256color",
        cols: int = DEFAULT_COLS,
        rows: int = DEFAULT_ROWS,
        tail_bytes: int = DEFAULT_TAIL_BYTES,
        kill_grace: float = KILL_GRACE,
        child_factory: ChildFactory = PtyChild.spawn,
        home: str | None = None,
    ):
        self.registry = registry
        self.history = history
        self.channel = channel
        self.shell = shell
        self.scratchpad = scratchpad
        self.base_env = dict(os.environ if env is None else env)
        self.term = term
        self.cols = cols
        self.rows = rows
        self.tail_bytes = tail_bytes
        self.kill_grace = kill_grace
        self.home = home or os.path.expanduser("~")
        self._child_factory = child_factory
        self._children: dict[int, _Child] = {}
        self._next_id = 1

    # --- Spawning ---

    def child_env(self) -> dict[str, str]:
        """Environment for a new child: host env plus TERM and the scratchpad path."""
        env = dict(self.base_env)
        env["TERM"] = self.term
        if self.scratchpad:
            env[SCRATCHPAD_ENV_VAR] = self.scratchpad
        return env

    async def spawn(self, working_directory: str | None = None) -> SessionDescriptor:
        """Start a session in `working_directory` (home if not given).

        Raises SpawnError if the process can't be created; nothing is
        registered in that case.
        """
        cwd = normalize_path(working_directory) if working_directory else normalize_path(self.home)
        argv = shlex.split(self.shell)
        if not argv:
            raise SpawnError(cwd, self.shell, "no shell configured")
        if not os.path.isdir(cwd):
            raise SpawnError(cwd, argv[0], "not a directory")

        try:
            process = self._child_factory(argv, cwd, self.child_env(), self.cols, self.rows)
        except Exception as e:
            raise SpawnError(cwd, argv[0], str(e)) from e

        session_id = self._next_id
        self._next_id += 1
        session = LiveSession(
            id=session_id,
            working_directory=cwd,
            process=process,
            tail=TailBuffer(self.tail_bytes),
        )
        child = _Child(session=session, process=process)
        self._children[session_id] = child
        self.registry.add(session)

        child.pump = asyncio.create_task(self._pump(child), name=f"session-{session_id}-pump")
        child.feeder = asyncio.create_task(self._feed(child), name=f"session-{session_id}-feed")

        title = self.registry.names.resolve(cwd)
        logger.info(f"Session {session_id}: started {argv[0]} in {cwd}")
        return SessionDescriptor(id=session_id, working_directory=cwd, title=title)

    # --- Output ---

    async def _pump(self, child: _Child) -> None:
        session_id = child.session.id
        process = child.process
        loop = asyncio.get_running_loop()
        readable = asyncio.Event()
        loop.add_reader(process.fd, readable.set)
        try:
            while True:
                await readable.wait()
                readable.clear()
                try:
                    data = process.read(READ_CHUNK)
                except EOFError:
                    break
                except OSError as e:
                    logger.debug("Session %d: read failed: %s", session_id, e)
                    break
                if data:
                    self.on_output(session_id, data)
        finally:
            loop.remove_reader(process.fd)

        child.reaping = True
        exit_code = await asyncio.to_thread(process.reap)
        self.on_exit(session_id, exit_code)

    def on_output(self, session_id: int, data: bytes) -> None:
        """Record output for a live session and forward it unchanged."""
        session = self.registry.get(session_id)
        if session is None:
            return
        session.tail.append(data)
        session.last_output_time = datetime.now()
        self.channel.publish_output(session_id, data)

    # --- Input ---

    async def _feed(self, child: _Child) -> None:
        while True:
            data = await child.inputs.get()
            try:
                await asyncio.to_thread(child.process.write, data)
            except (OSError, EOFError) as e:
                logger.debug("Session %d: write failed: %s", child.session.id, e)

    def write(self, session_id: int, data: bytes | str) -> bool:
        """Queue input for a session. Unknown or exited ids are ignored."""
        child = self._children.get(session_id)
        if child is None or session_id not in self.registry:
            logger.debug("Write to stale session %s dropped", session_id)
            return False
        if isinstance(data, str):
            data = data.encode("utf-8")
        if data:
            try:
                child.inputs.put_nowait(data)
            except asyncio.QueueFull:
                logger.debug("Session %d: input backlog full, %d bytes dropped", session_id, len(data))
                return False
        return True

    def resize(self, session_id: int, cols: int, rows: int) -> bool:
        """Resize a session's terminal. Unknown or exited ids are ignored."""
        child = self._children.get(session_id)
        if child is None or session_id not in self.registry:
            logger.debug("Resize of stale session %s dropped", session_id)
            return False
        try:
            child.process.resize(int(cols), int(rows))
        except (OSError, ValueError) as e:
            logger.debug("Session %d: resize failed: %s", session_id, e)
            return False
        return True

    # --- Termination ---

    def kill(self, session_id: int, grace: float | None = None) -> bool:
        """Hang up a session and deregister it now. Idempotent.

        If the child is still running `grace` seconds later it gets SIGKILL.
        """
        session = self.registry.remove(session_id)
        if session is None:
            return True
        child = self._children.get(session_id)
        if child is not None and child.stopper is None:
            logger.info(f"Session {session_id}: killing")
            try:
                child.process.hangup()
            except OSError as e:
                logger.warning("Session %d: hangup failed: %s", session_id, e)
            child.stopper = asyncio.create_task(
                self._stop(child, self.kill_grace if grace is None else grace),
                name=f"session-{session_id}-stop",
            )
        return True

    async def _stop(self, child: _Child, grace: float) -> None:
        session_id = child.session.id
        pump = child.pump
        if pump is None or await _finished(pump, grace):
            return
        logger.warning(f"Session {session_id}: still running {grace:.1f}s after SIGHUP, sending SIGKILL")
        try:
            child.process.force_kill()
        except OSError as e:
            logger.warning("Session %d: SIGKILL failed: %s", session_id, e)
        if await _finished(pump, grace):
            return
        if child.reaping:
            await pump
            return
        # A descendant still holds the terminal open: stop reading and reap here
        logger.warning(f"Session {session_id}: no end of output after SIGKILL, reaping directly")
        pump.cancel()
        await asyncio.gather(pump, return_exceptions=True)
        exit_code = await asyncio.to_thread(child.process.reap)
        self.on_exit(session_id, exit_code)

    def on_exit(self, session_id: int, exit_code: int | None) -> ExitRecord | None:
        """Handle a session's termination. Runs at most once per session."""
        child = self._children.pop(session_id, None)
        if child is None:
            return None
        self.registry.remove(session_id)
        if child.feeder is not None:
            child.feeder.cancel()

        title = self.registry.names.resolve(child.session.working_directory)
        record = self.history.record(session_id, title, exit_code)
        logger.info(f"Session {session_id}: exited (code {exit_code})")
        self.channel.publish_exit(session_id, exit_code)
        return record

    async def shutdown(self, grace: float | None = None) -> None:
        """Hang up every child and wait until each one is reaped.

        Children still running after `grace` seconds are killed with SIGKILL.
        """
        for session_id in list(self._children):
            self.kill(session_id, grace)
        stoppers = [c.stopper for c in self._children.values() if c.stopper is not None]
        if stoppers:
            await asyncio.gather(*stoppers, return_exceptions=True)
        pumps = [c.pump for c in self._children.values() if c.pump is not None]
        if pumps:
            await asyncio.gather(*pumps, return_exceptions=True)
        if self._children:
            logger.warning("%d child process(es) still tracked after shutdown", len(self._children))

    def tracked_ids(self) -> list[int]:
        """Ids spawned and not yet reaped (includes killed-but-exiting)."""
        return list(self._children)


async def _finished(task: asyncio.Task, timeout: float) -> bool:
    done, _ = await asyncio.wait({task}, timeout=timeout)
    return bool(done)
