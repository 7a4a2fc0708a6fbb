"""Bounded most-recent-first log of terminated sessions."""

from collections import deque
from datetime import datetime

from .types import ExitRecord

DEFAULT_EXIT_HISTORY_LIMIT = 20


class ExitHistory:
    """Newest record first; the oldest fall off once `limit` is exceeded."""

    def __init__(self, limit: int = DEFAULT_EXIT_HISTORY_LIMIT):
        if limit <= 0:
            raise ValueError("limit must be positive")
        self._records: deque[ExitRecord] = deque(maxlen=limit)

    @property
    def limit(self) -> int:
        return self._records.maxlen or 0

    def record(
        self,
        session_id: int,
        title: str,
        exit_code: int | None,
        timestamp: datetime | None = None,
    ) -> ExitRecord:
        entry = ExitRecord(
            id=session_id,
            title=title,
            exit_code=exit_code,
            timestamp=timestamp or datetime.now(),
        )
        self._records.appendleft(entry)
        return entry

    def records(self) -> list[ExitRecord]:
        return list(self._records)

    def __getitem__(self, index: int) -> ExitRecord:
        return self._records[index]

    def __len__(self) -> int:
        return len(self._records)
