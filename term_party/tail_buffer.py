"""Bounded recent-output cache for one session.

A fixed-capacity ring buffer: append() copies into a preallocated bytearray
and moves head/length indices, so the per-event cost is bounded by the chunk
size and never grows with session lifetime. Holds the last `capacity` bytes.
"""

DEFAULT_TAIL_BYTES = 4096


class TailBuffer:
    """Keeps the most recent `capacity` bytes of output."""

    __slots__ = ("_buf", "_capacity", "_head", "_length")

    def __init__(self, capacity: int = DEFAULT_TAIL_BYTES):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._buf = bytearray(capacity)
        self._capacity = capacity
        self._head = 0  # Index of the oldest byte
        self._length = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return self._length

    def append(self, data: bytes) -> None:
        """Append output, discarding the oldest bytes beyond capacity."""
        n = len(data)
        if n == 0:
            return
        cap = self._capacity
        if n >= cap:
            # Only the last `cap` bytes survive
            self._buf[:] = data[n - cap :]
            self._head = 0
            self._length = cap
            return

        tail = (self._head + self._length) % cap
        first = min(n, cap - tail)
        self._buf[tail : tail + first] = data[:first]
        if first < n:
            self._buf[: n - first] = data[first:]

        overflow = self._length + n - cap
        if overflow > 0:
            self._head = (self._head + overflow) % cap
            self._length = cap
        else:
            self._length += n

    def snapshot(self) -> bytes:
        """Return buffered bytes oldest-first. Does not mutate state."""
        end = self._head + self._length
        if end <= self._capacity:
            return bytes(self._buf[self._head : end])
        return bytes(self._buf[self._head :]) + bytes(self._buf[: end - self._capacity])
