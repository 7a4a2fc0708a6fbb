"""Output/exit fan-out to external consumers (views, dashboards, agents).

publish() never waits: each subscriber has its own backlog, and when a
subscriber falls more than `backlog_bytes` of output behind, its oldest
output events are discarded. Exit events are never discarded.
"""

from __future__ import annotations

import asyncio
from collections import deque

from .logging_config import get_logger
from .types import Event, ExitEvent, OutputEvent

logger = get_logger(__name__)

DEFAULT_BACKLOG_BYTES = 1024 * 1024


class Subscription:
    """One consumer's view of the event stream. Async-iterable."""

    def __init__(self, channel: EventChannel, backlog_bytes: int):
        self._channel = channel
        self._backlog_bytes = backlog_bytes
        self._events: deque[Event] = deque()
        self._pending_bytes = 0
        self._ready = asyncio.Event()
        self._closed = False
        self.dropped = 0

    def _push(self, event: Event) -> None:
        if self._closed:
            return
        self._events.append(event)
        if isinstance(event, OutputEvent):
            self._pending_bytes += len(event.data)
            self._trim()
        self._ready.set()

    def _trim(self) -> None:
        if self._pending_bytes <= self._backlog_bytes:
            return
        kept: deque[Event] = deque()
        for event in self._events:
            if isinstance(event, OutputEvent) and self._pending_bytes > self._backlog_bytes:
                self._pending_bytes -= len(event.data)
                self.dropped += 1
                continue
            kept.append(event)
        self._events = kept
        logger.debug("Subscriber behind, %d output events dropped so far", self.dropped)

    def get_nowait(self) -> Event | None:
        if not self._events:
            return None
        event = self._events.popleft()
        if isinstance(event, OutputEvent):
            self._pending_bytes -= len(event.data)
        if not self._events:
            self._ready.clear()
        return event

    async def get(self) -> Event:
        """Wait for the next event. Raises StopAsyncIteration once closed and drained."""
        while True:
            event = self.get_nowait()
            if event is not None:
                return event
            if self._closed:
                raise StopAsyncIteration
            await self._ready.wait()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._ready.set()
        self._channel._unsubscribe(self)

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> Event:
        return await self.get()

    def __len__(self) -> int:
        return len(self._events)


class EventChannel:
    """Broadcasts session events to every open subscription."""

    def __init__(self, backlog_bytes: int = DEFAULT_BACKLOG_BYTES):
        self.backlog_bytes = backlog_bytes
        self._subscribers: list[Subscription] = []

    def subscribe(self) -> Subscription:
        sub = Subscription(self, self.backlog_bytes)
        self._subscribers.append(sub)
        return sub

    def publish(self, event: Event) -> None:
        for sub in list(self._subscribers):
            sub._push(event)

    def publish_output(self, session_id: int, data: bytes) -> None:
        if self._subscribers:
            self.publish(OutputEvent(session_id, data))

    def publish_exit(self, session_id: int, exit_code: int | None) -> None:
        self.publish(ExitEvent(session_id, exit_code))

    def close(self) -> None:
        for sub in list(self._subscribers):
            sub.close()

    def _unsubscribe(self, sub: Subscription) -> None:
        try:
            self._subscribers.remove(sub)
        except ValueError:
            pass

    def __len__(self) -> int:
        return len(self._subscribers)
