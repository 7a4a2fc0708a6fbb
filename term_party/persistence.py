"""Best-effort persistence of sessions, favorites and directory names.

Three independent records live in the state directory:
  sessions.json   — [{"workingDirectory": ...}]  live sessions then ghosts
  favorites.json  — [{"workingDirectory": ...}]
  names.json      — {workingDirectory: displayName}

Persistence is a cache of intent. In-memory state is authoritative while the
host runs; writes are coalesced by a debounced background task and failures
are logged, never raised. A missing or malformed record loads as empty.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .logging_config import get_logger
from .names import normalize_path
from .types import GhostSession

logger = get_logger(__name__)

SESSIONS_FILE = "sessions.json"
FAVORITES_FILE = "favorites.json"
NAMES_FILE = "names.json"

DEFAULT_DEBOUNCE = 0.25


@dataclass
class SavedState:
    """Full logical state as persisted."""

    sessions: list[dict[str, str]] = field(default_factory=list)
    favorites: list[dict[str, str]] = field(default_factory=list)
    names: dict[str, str] = field(default_factory=dict)

    def ghosts(self) -> list[GhostSession]:
        """Saved sessions as ghosts, deduplicated by directory, order kept."""
        seen: set[str] = set()
        ghosts = []
        for record in self.sessions:
            ghost = GhostSession.from_dict(record)
            ghost.working_directory = normalize_path(ghost.working_directory)
            if ghost.working_directory in seen:
                continue
            seen.add(ghost.working_directory)
            ghosts.append(ghost)
        return ghosts

    def favorite_paths(self) -> list[str]:
        return [record["workingDirectory"] for record in self.favorites]


def _directory_records(data: Any) -> list[dict[str, str]]:
    """Validate a [{"workingDirectory": str}] record; anything else is empty."""
    if not isinstance(data, list):
        return []
    records = []
    for item in data:
        if isinstance(item, dict) and isinstance(item.get("workingDirectory"), str) and item["workingDirectory"]:
            records.append({"workingDirectory": item["workingDirectory"]})
    return records


def _name_records(data: Any) -> dict[str, str]:
    if not isinstance(data, dict):
        return {}
    return {k: v for k, v in data.items() if isinstance(k, str) and isinstance(v, str)}


class PersistenceStore:
    """Loads state at startup and writes snapshots on mutation."""

    def __init__(self, state_dir: Path, debounce: float = DEFAULT_DEBOUNCE):
        self.state_dir = state_dir
        self.debounce = debounce
        self._snapshot: Callable[[], SavedState] | None = None
        self._task: asyncio.Task | None = None
        self._dirty = False
        self._wake = asyncio.Event()
        self.write_count = 0

    # --- Loading ---

    def _read_json(self, name: str) -> Any:
        path = self.state_dir / name
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text())
        except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
            logger.warning("Ignoring unreadable %s: %s", path, e)
            return None

    def load(self) -> SavedState:
        """Load all three records. Never raises; bad records come back empty."""
        return SavedState(
            sessions=_directory_records(self._read_json(SESSIONS_FILE)),
            favorites=_directory_records(self._read_json(FAVORITES_FILE)),
            names=_name_records(self._read_json(NAMES_FILE)),
        )

    # --- Writing ---

    def bind(self, snapshot: Callable[[], SavedState]) -> None:
        """Set the callable that captures current state for each write."""
        self._snapshot = snapshot

    def schedule(self) -> None:
        """Request a write. Coalesced with other requests inside the debounce window.

        Outside a running event loop the write happens immediately.
        """
        if self._snapshot is None:
            return
        self._dirty = True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._dirty = False
            self.write_now(self._snapshot())
            return
        if self._task is None:
            self._task = loop.create_task(self._write_later())

    async def _write_later(self) -> None:
        try:
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self.debounce)
            except asyncio.TimeoutError:
                pass
            while self._dirty and self._snapshot is not None:
                self._dirty = False
                state = self._snapshot()
                await asyncio.to_thread(self.write_now, state)
        finally:
            self._wake.clear()
            self._task = None

    async def flush(self) -> None:
        """Write any pending state now and wait for it to land."""
        task = self._task
        if task is not None:
            self._wake.set()
            await task
        if self._dirty and self._snapshot is not None:
            self._dirty = False
            await asyncio.to_thread(self.write_now, self._snapshot())

    def write_now(self, state: SavedState) -> bool:
        """Write every record (atomic per file). Returns False on any failure."""
        ok = True
        for name, payload in (
            (SESSIONS_FILE, state.sessions),
            (FAVORITES_FILE, state.favorites),
            (NAMES_FILE, state.names),
        ):
            ok = self._write_record(name, payload) and ok
        self.write_count += 1
        return ok

    def _write_record(self, name: str, payload: Any) -> bool:
        try:
            self.state_dir.mkdir(parents=True, exist_ok=True)
            path = self.state_dir / name
            tmp = path.with_suffix(".tmp")
            tmp.write_text(json.dumps(payload, indent=2))
            tmp.rename(path)
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.error("Failed to save %s: %s", name, e)
            return False
