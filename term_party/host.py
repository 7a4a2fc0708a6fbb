"""Session host — the coordinator behind every UI/agent request.

Wires the session layer together around one event loop:

  PersistenceStore ── load ──▶ names, favorites, ghosts
  SessionRegistry / DirectoryNameRegistry / Favorites ── on change ──▶ store.schedule()
  ProcessSupervisor ── output/exit ──▶ EventChannel, ExitHistory

All request methods run on the loop thread, so registry mutations never
interleave. Nothing here waits on a particular session's I/O.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Mapping
from typing import Any

from . import config
from .child import PtyChild
from .errors import SpawnError
from .events import DEFAULT_BACKLOG_BYTES, EventChannel, Subscription
from .exit_history import DEFAULT_EXIT_HISTORY_LIMIT, ExitHistory
from .favorites import Favorites
from .logging_config import get_logger
from .names import DirectoryNameRegistry
from .persistence import PersistenceStore, SavedState
from .sessions import SessionRegistry
from .supervisor import DEFAULT_COLS, DEFAULT_ROWS, KILL_GRACE, ChildFactory, ProcessSupervisor
from .tail_buffer import DEFAULT_TAIL_BYTES
from .types import parse_ghost_id

logger = get_logger(__name__)

# Returns a path, None, or an awaitable of either
DirectoryPicker = Callable[[], Any]


class SessionHost:
    """Owns the session layer's state and exposes its request surface."""

    def __init__(
        self,
        store: PersistenceStore,
        *,
        shell: str = "/bin/bash",
        scratchpad: str | None = None,
        env: Mapping[str, str] | None = None,
        term: str = "xterm-256color",
        cols: int = DEFAULT_COLS,
        rows: int = DEFAULT_ROWS,
        tail_bytes: int = DEFAULT_TAIL_BYTES,
        exit_history_limit: int = DEFAULT_EXIT_HISTORY_LIMIT,
        backlog_bytes: int = DEFAULT_BACKLOG_BYTES,
        kill_grace: float = KILL_GRACE,
        child_factory: ChildFactory = PtyChild.spawn,
        directory_picker: DirectoryPicker | None = None,
        home: str | None = None,
    ):
        self.store = store
        saved = store.load()
        self.names = DirectoryNameRegistry(saved.names, on_change=store.schedule)
        self.favorites = Favorites(saved.favorite_paths(), on_change=store.schedule)
        self.registry = SessionRegistry(self.names, saved.ghosts(), on_change=store.schedule)
        self.history = ExitHistory(exit_history_limit)
        self.channel = EventChannel(backlog_bytes)
        self.supervisor = ProcessSupervisor(
            self.registry,
            self.history,
            self.channel,
            shell=shell,
            scratchpad=scratchpad,
            env=env,
            term=term,
            cols=cols,
            rows=rows,
            tail_bytes=tail_bytes,
            kill_grace=kill_grace,
            child_factory=child_factory,
            home=home,
        )
        self._directory_picker = directory_picker
        self._final_state: SavedState | None = None
        store.bind(self.snapshot)
        logger.info(
            "Session host ready: %d ghost(s), %d favorite(s), %d name(s)",
            len(self.registry.ghosts()),
            len(self.favorites),
            len(self.names),
        )

    @classmethod
    def from_config(cls, **overrides: Any) -> SessionHost:
        """Build a host from config.get_settings(). Requires config.init()."""
        config.ensure_dirs()
        settings = config.get_settings()
        store = PersistenceStore(config.state_dir(), debounce=float(settings["persist_debounce"]))
        kwargs: dict[str, Any] = {
            "shell": config.resolve_shell(),
            "scratchpad": str(config.scratchpad_dir()),
            "term": settings["term"],
            "cols": int(settings["initial_cols"]),
            "rows": int(settings["initial_rows"]),
            "tail_bytes": int(settings["tail_bytes"]),
            "exit_history_limit": int(settings["exit_history_limit"]),
            "backlog_bytes": int(settings["subscriber_backlog_bytes"]),
            "kill_grace": float(settings["kill_grace"]),
        }
        kwargs.update(overrides)
        return cls(store, **kwargs)

    def snapshot(self) -> SavedState:
        """Current logical state in persisted form."""
        if self._final_state is not None:
            return self._final_state
        return SavedState(
            sessions=self.registry.persisted_records(),
            favorites=[{"workingDirectory": p} for p in self.favorites.paths()],
            names=self.names.to_dict(),
        )

    # --- Sessions ---

    async def select_working_directory(self) -> str | None:
        """Ask the configured picker for a directory. None if cancelled or no picker."""
        if self._directory_picker is None:
            return None
        result = self._directory_picker()
        if inspect.isawaitable(result):
            result = await result
        return result or None

    async def create_session(self, path: str | None = None) -> dict[str, Any]:
        """Spawn a session. Raises SpawnError on failure."""
        descriptor = await self.supervisor.spawn(path)
        return descriptor.to_dict()

    def kill_session(self, session_id: int) -> bool:
        return self.supervisor.kill(session_id)

    def list_sessions(self) -> list[dict[str, Any]]:
        return self.registry.list_all()

    def remove_ghost(self, index: int | str) -> bool:
        """Forget a ghost by index or "ghost-N" id. Unknown ghosts are ignored."""
        position = _ghost_index(index)
        if position is not None:
            self.registry.remove_ghost(position)
        return True

    async def spawn_ghost(self, index: int | str) -> dict[str, Any] | None:
        """Respawn a ghost as a live session. None if there's no such ghost.

        If the spawn fails the ghost is put back where it was.
        """
        index = _ghost_index(index)
        if index is None:
            return None
        ghost = self.registry.remove_ghost(index)
        if ghost is None:
            return None
        try:
            return await self.create_session(ghost.working_directory)
        except SpawnError:
            self.registry.insert_ghost(index, ghost)
            raise

    def rename_directory(self, path: str, name: str) -> bool:
        self.names.rename(path, name)
        return True

    def set_session_order(self, ids: list[Any]) -> list[int]:
        return self.registry.reorder(ids)

    def write_input(self, session_id: int, data: bytes | str) -> None:
        self.supervisor.write(session_id, data)

    def resize(self, session_id: int, cols: int, rows: int) -> None:
        self.supervisor.resize(session_id, cols, rows)

    def subscribe(self) -> Subscription:
        """Subscribe to output and exit events for all sessions."""
        return self.channel.subscribe()

    # --- Favorites ---

    def get_favorites(self) -> list[dict[str, str]]:
        return self.favorites.describe(self.names)

    def add_favorite(self, path: str) -> bool:
        self.favorites.add(path)
        return True

    def remove_favorite(self, path: str) -> bool:
        self.favorites.remove(path)
        return True

    # --- Dashboard views ---

    def get_exit_history(self) -> list[dict[str, Any]]:
        return [record.to_dict() for record in self.history.records()]

    def get_live_session_tails(self) -> list[dict[str, Any]]:
        tails = []
        for session in self.registry.live_sessions():
            tails.append(
                {
                    "id": session.id,
                    "title": self.names.resolve(session.working_directory),
                    "workingDirectory": session.working_directory,
                    "tail": session.tail.snapshot().decode("utf-8", errors="replace"),
                    "lastOutputTime": (
                        session.last_output_time.isoformat() if session.last_output_time else None
                    ),
                }
            )
        return tails

    # --- Lifecycle ---

    async def flush(self) -> None:
        await self.store.flush()

    async def shutdown(self) -> None:
        """Persist every session as resumable, then stop all children."""
        if self._final_state is not None:
            return
        self._final_state = self.snapshot()
        logger.info(
            f"Shutting down with {len(self.registry)} live session(s), "
            f"{len(self.supervisor.tracked_ids())} child process(es)"
        )
        await self.supervisor.shutdown()
        self.store.schedule()
        await self.store.flush()
        self.channel.close()


def _ghost_index(ref: int | str) -> int | None:
    if isinstance(ref, str):
        return parse_ghost_id(ref)
    return ref
