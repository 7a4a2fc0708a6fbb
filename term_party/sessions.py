"""Session registry — the authority on which sessions exist and in what order.

Owns three pieces of state:
  live     — id → LiveSession, one per running child process
  order    — display order of live ids (each live id exactly once)
  ghosts   — saved working directories with no process, in stored order

All methods are synchronous and run on the host's event loop, so each
mutation is atomic with respect to the others. Every mutation calls the
on_change hook, which the host wires to a persistence write.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from .logging_config import get_logger
from .names import DirectoryNameRegistry, normalize_path
from .types import GhostSession, LiveSession, SessionState, ghost_id

logger = get_logger(__name__)


class SessionRegistry:
    """Live sessions, ghosts, and the order index."""

    def __init__(
        self,
        names: DirectoryNameRegistry,
        ghosts: Iterable[GhostSession] = (),
        on_change: Callable[[], None] | None = None,
    ):
        self.names = names
        self._live: dict[int, LiveSession] = {}
        self._order: list[int] = []
        self._ghosts: list[GhostSession] = list(ghosts)
        self._on_change = on_change

    # --- Live sessions ---

    def add(self, session: LiveSession) -> None:
        """Register a live session at the end of the display order."""
        if session.id in self._live:
            raise ValueError(f"Session {session.id} already registered")
        self._live[session.id] = session
        self._order.append(session.id)
        self._changed()

    def remove(self, session_id: int) -> LiveSession | None:
        """Deregister a live session. Returns None if it wasn't live."""
        session = self._live.pop(session_id, None)
        if session is None:
            return None
        try:
            self._order.remove(session_id)
        except ValueError:
            logger.debug("Session %d was live but missing from order", session_id)
        self._changed()
        return session

    def get(self, session_id: int) -> LiveSession | None:
        return self._live.get(session_id)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._live

    def __len__(self) -> int:
        return len(self._live)

    def ordered_ids(self) -> list[int]:
        """Live ids in display order; live ids missing from the order go last."""
        ids = [sid for sid in self._order if sid in self._live]
        seen = set(ids)
        ids.extend(sid for sid in self._live if sid not in seen)
        return ids

    def live_sessions(self) -> list[LiveSession]:
        return [self._live[sid] for sid in self.ordered_ids()]

    def reorder(self, new_order: Iterable[Any]) -> list[int]:
        """Replace the display order.

        Ids that are no longer live (or aren't session ids at all) are
        dropped silently; UI reorders routinely race with process exit.
        Live ids the caller left out keep their place at the end.
        """
        order: list[int] = []
        for raw in new_order:
            sid = _session_id(raw)
            if sid is not None and sid in self._live and sid not in order:
                order.append(sid)
        order.extend(sid for sid in self.ordered_ids() if sid not in order)
        self._order = order
        self._changed()
        return list(order)

    # --- Ghosts ---

    def ghosts(self) -> list[GhostSession]:
        return list(self._ghosts)

    def add_ghost(self, path: str) -> GhostSession:
        ghost = GhostSession(working_directory=normalize_path(path))
        self._ghosts.append(ghost)
        self._changed()
        return ghost

    def insert_ghost(self, index: int, ghost: GhostSession) -> None:
        self._ghosts.insert(index, ghost)
        self._changed()

    def remove_ghost(self, index: int) -> GhostSession | None:
        """Remove the ghost at `index`. Out-of-range is a no-op (None)."""
        if not 0 <= index < len(self._ghosts):
            return None
        ghost = self._ghosts.pop(index)
        self._changed()
        return ghost

    # --- Views ---

    def entries(self) -> list[SessionState]:
        """Live sessions in display order, then ghosts in stored order."""
        return [*self.live_sessions(), *self._ghosts]

    def list_all(self) -> list[dict[str, Any]]:
        """Descriptors for entries(); ghosts get "ghost-N" ids by position."""
        entries: list[dict[str, Any]] = []
        ghost_index = 0
        for entry in self.entries():
            entry_dict: dict[str, Any] = {
                "workingDirectory": entry.working_directory,
                "title": self.names.resolve(entry.working_directory),
                "isGhost": entry.is_ghost,
            }
            if isinstance(entry, GhostSession):
                entry_dict["id"] = ghost_id(ghost_index)
                ghost_index += 1
            else:
                entry_dict["id"] = entry.id
                entry_dict["lastOutputTime"] = (
                    entry.last_output_time.isoformat() if entry.last_output_time else None
                )
            entries.append(entry_dict)
        return entries

    def persisted_records(self) -> list[dict[str, str]]:
        """Resumable records: live sessions (in order) followed by ghosts."""
        return [GhostSession(entry.working_directory).to_dict() for entry in self.entries()]

    def _changed(self) -> None:
        if self._on_change:
            self._on_change()


def _session_id(raw: Any) -> int | None:
    """Accept ints (not bools) and integer strings; anything else is junk."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str) and raw.strip().lstrip("-").isdigit():
        return int(raw)
    return None
