"""Type definitions for the session layer.

A session entry is either live (backed by a child process) or a ghost (a
remembered working directory with nothing running). The two are separate
classes so nothing can treat a ghost as live by accident:

    SessionState = LiveSession | GhostSession

Ghosts are addressed by position through synthetic "ghost-N" ids.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Union

from typing_extensions import Self

from .tail_buffer import TailBuffer

GHOST_ID_PREFIX = "ghost-"


@dataclass
class LiveSession:
    """A process-backed session. `process` is owned by the supervisor."""

    id: int
    working_directory: str
    process: Any = field(default=None, repr=False)
    tail: TailBuffer = field(default_factory=TailBuffer, repr=False)
    last_output_time: datetime | None = None

    is_ghost = False


@dataclass
class GhostSession:
    """A saved working directory with no running process."""

    working_directory: str

    is_ghost = True

    def to_dict(self) -> dict[str, str]:
        return {"workingDirectory": self.working_directory}

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        return cls(working_directory=str(data["workingDirectory"]))


SessionState = Union[LiveSession, GhostSession]


def ghost_id(index: int) -> str:
    """Synthetic id for a ghost, disjoint from integer live-session ids."""
    return f"{GHOST_ID_PREFIX}{index}"


def parse_ghost_id(value: str) -> int | None:
    """Inverse of ghost_id(); None if `value` isn't a ghost id."""
    if not isinstance(value, str) or not value.startswith(GHOST_ID_PREFIX):
        return None
    try:
        return int(value[len(GHOST_ID_PREFIX) :])
    except ValueError:
        return None


@dataclass(frozen=True)
class SessionDescriptor:
    """Returned by spawn/create: what the caller needs to attach a view."""

    id: int
    working_directory: str
    title: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "workingDirectory": self.working_directory, "title": self.title}


@dataclass(frozen=True)
class ExitRecord:
    """One terminated session. exit_code is None when killed by a signal."""

    id: int
    title: str
    exit_code: int | None
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["exitCode"] = data.pop("exit_code")
        data["timestamp"] = self.timestamp.isoformat()
        return data


@dataclass(frozen=True)
class OutputEvent:
    """Raw output from a session, forwarded unchanged."""

    id: int
    data: bytes


@dataclass(frozen=True)
class ExitEvent:
    """Emitted once per session termination."""

    id: int
    exit_code: int | None = None


Event = Union[OutputEvent, ExitEvent]
