"""Favorite working directories — quick-access list, one entry per directory."""

from collections.abc import Callable, Iterable
from pathlib import Path

from .names import DirectoryNameRegistry, normalize_path


class Favorites:
    """Ordered set of favorite directories (insertion order)."""

    def __init__(
        self,
        paths: Iterable[str] = (),
        on_change: Callable[[], None] | None = None,
    ):
        self._paths: list[str] = []
        for path in paths:
            key = normalize_path(path)
            if key not in self._paths:
                self._paths.append(key)
        self._on_change = on_change

    def add(self, path: str | Path) -> bool:
        """Add a favorite. Returns False (no-op) if already present."""
        key = normalize_path(path)
        if key in self._paths:
            return False
        self._paths.append(key)
        self._changed()
        return True

    def remove(self, path: str | Path) -> bool:
        """Remove a favorite. Returns False if it wasn't one."""
        key = normalize_path(path)
        if key not in self._paths:
            return False
        self._paths.remove(key)
        self._changed()
        return True

    def paths(self) -> list[str]:
        return list(self._paths)

    def describe(self, names: DirectoryNameRegistry) -> list[dict[str, str]]:
        """Favorites with titles resolved through the directory name registry."""
        return [{"workingDirectory": p, "title": names.resolve(p)} for p in self._paths]

    def __contains__(self, path: object) -> bool:
        return isinstance(path, (str, Path)) and normalize_path(path) in self._paths

    def __len__(self) -> int:
        return len(self._paths)

    def _changed(self) -> None:
        if self._on_change:
            self._on_change()
