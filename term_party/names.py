"""Directory display names.

A display name belongs to a working directory, not to a session: renaming
/tmp/a retitles every live session, ghost and favorite rooted there, and
survives respawns. Directories without an override show their last path
segment.
"""

import os
from collections.abc import Callable, Mapping
from pathlib import Path

from .logging_config import get_logger

logger = get_logger(__name__)


def normalize_path(path: str | Path) -> str:
    """Canonical key for a working directory (expanded, no trailing slash)."""
    return os.path.normpath(os.path.expanduser(str(path)))


def default_title(path: str | Path) -> str:
    """Last path segment, or the path itself for a filesystem root."""
    key = normalize_path(path)
    return os.path.basename(key) or key


class DirectoryNameRegistry:
    """Maps working directory → user-chosen display name."""

    def __init__(
        self,
        names: Mapping[str, str] | None = None,
        on_change: Callable[[], None] | None = None,
    ):
        self._names: dict[str, str] = {}
        for path, name in (names or {}).items():
            self._names[normalize_path(path)] = name
        self._on_change = on_change

    def resolve(self, path: str | Path) -> str:
        """Stored override for `path`, else its last path segment."""
        key = normalize_path(path)
        return self._names.get(key) or default_title(key)

    def rename(self, path: str | Path, name: str) -> None:
        """Set the display name for `path` (last write wins)."""
        key = normalize_path(path)
        self._names[key] = name
        logger.info("Renamed %s -> %r", key, name)
        if self._on_change:
            self._on_change()

    def to_dict(self) -> dict[str, str]:
        return dict(self._names)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, (str, Path)) and normalize_path(path) in self._names

    def __len__(self) -> int:
        return len(self._names)
