"""One interactive child process on a pseudo-terminal (ptyprocess-backed).

The supervisor talks to children only through this interface:
  fd            — master side, non-blocking, watched on the event loop
  read(n)       — up to n bytes; b"" if nothing is ready, EOFError at end
  write(data)   — write all of data, waiting for the terminal to drain
  resize(c, r)  — set the terminal geometry
  hangup()      — send SIGHUP without waiting
  force_kill()  — send SIGKILL without waiting
  reap()        — block until the child is gone, return its exit code
"""

from __future__ import annotations

import errno
import os
import select
import signal
from collections.abc import Mapping, Sequence

from ptyprocess import PtyProcess, PtyProcessError

from .logging_config import get_logger

logger = get_logger(__name__)

# Seconds a blocked write waits for the terminal before checking again
WRITE_POLL = 0.5


class PtyChild:
    """Thin wrapper over ptyprocess.PtyProcess with a non-blocking master."""

    def __init__(self, process: PtyProcess):
        self._process = process
        os.set_blocking(process.fd, False)

    @classmethod
    def spawn(
        cls,
        argv: Sequence[str],
        cwd: str,
        env: Mapping[str, str],
        cols: int,
        rows: int,
    ) -> PtyChild:
        process = PtyProcess.spawn(list(argv), cwd=cwd, env=dict(env), dimensions=(rows, cols))
        return cls(process)

    @property
    def fd(self) -> int:
        return self._process.fd

    @property
    def pid(self) -> int:
        return self._process.pid

    def read(self, size: int) -> bytes:
        try:
            data = os.read(self.fd, size)
        except BlockingIOError:
            return b""
        except OSError as e:
            # Linux reports a closed slave side as EIO
            if e.errno == errno.EIO:
                raise EOFError from e
            raise
        if not data:
            raise EOFError
        return data

    def write(self, data: bytes) -> None:
        """Write everything. Runs in a worker thread, so waiting here is fine."""
        view = memoryview(data)
        while view:
            try:
                written = os.write(self.fd, view)
            except BlockingIOError:
                select.select([], [self.fd], [], WRITE_POLL)
                continue
            view = view[written:]

    def resize(self, cols: int, rows: int) -> None:
        self._process.setwinsize(rows, cols)

    def hangup(self) -> None:
        self._signal(signal.SIGHUP)

    def force_kill(self) -> None:
        self._signal(signal.SIGKILL)

    def _signal(self, signum: int) -> None:
        # os.kill rather than PtyProcess.kill/terminate: those poll waitpid,
        # which would race the reaper thread.
        try:
            os.kill(self._process.pid, signum)
        except ProcessLookupError:
            logger.debug("pid %d already gone", self._process.pid)

    def reap(self) -> int | None:
        """Wait for exit and release the terminal. None means killed by a signal."""
        try:
            self._process.wait()
        except (PtyProcessError, ChildProcessError) as e:
            logger.debug("pid %d: wait failed: %s", self._process.pid, e)
        try:
            self._process.close(force=True)
        except (PtyProcessError, OSError) as e:
            logger.debug("pid %d: close failed: %s", self._process.pid, e)
        return self._process.exitstatus
