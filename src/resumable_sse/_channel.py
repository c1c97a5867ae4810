"""
Ordered hand-off of events from a connector to its consumers.

A connector only needs something with `put(event)`; `queue.Queue` and
`asyncio.Queue` both qualify. The channels below add closing, so consumers
can iterate until the subscription ends, and an unbuffered mode in which
`put` returns only once a consumer has taken the event.

Closing never blocks. Events already queued can still be received; a
producer waiting in `put` wakes up with `ChannelClosed`.
"""

from __future__ import annotations

import asyncio
import threading
from collections import deque
from typing import AsyncIterator, Iterator, Protocol

from resumable_sse._errors import SSEError
from resumable_sse._events import Event


class EventSink(Protocol):
    def put(self, event: Event) -> None: ...


class AsyncEventSink(Protocol):
    async def put(self, event: Event) -> None: ...


class ChannelClosed(SSEError):
    """Raised when sending on, or receiving from, a closed and drained channel."""


class EventChannel:
    """
    Thread-safe channel between one producer and any number of consumers.

    Args:
        buffer: Number of events that may wait for a consumer. With the
            default of 0, `put` blocks until a consumer has received the event.
    """

    def __init__(self, buffer: int = 0) -> None:
        if buffer < 0:
            raise ValueError("buffer must be >= 0")
        self._unbuffered = buffer == 0
        self._maxsize = max(buffer, 1)
        self._items: deque[Event] = deque()
        self._cond = threading.Condition()
        self._closed = False
        self._sent = 0
        self._taken = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def put(self, event: Event) -> None:
        """
        Send `event`, blocking while the buffer is full (or, unbuffered,
        until a consumer takes it).

        Raises:
            ChannelClosed: The channel was closed before the event was accepted.
        """
        with self._cond:
            while not self._closed and len(self._items) >= self._maxsize:
                self._cond.wait()
            if self._closed:
                raise ChannelClosed("send on closed channel")
            self._items.append(event)
            self._sent += 1
            ticket = self._sent
            self._cond.notify_all()
            if not self._unbuffered:
                return
            while self._taken < ticket and not self._closed:
                self._cond.wait()
            if self._taken < ticket:
                raise ChannelClosed("channel closed before the event was received")

    def close(self) -> None:
        """Signal that no more events will be sent. Idempotent, never blocks."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def get(self, timeout: float | None = None) -> Event:
        """
        Receive the next event.

        Raises:
            ChannelClosed: The channel was closed and every event was received.
            TimeoutError: `timeout` elapsed first.
        """
        with self._cond:
            if not self._cond.wait_for(lambda: self._items or self._closed, timeout):
                raise TimeoutError("no event received in time")
            if not self._items:
                raise ChannelClosed("channel closed")
            event = self._items.popleft()
            self._taken += 1
            self._cond.notify_all()
            return event

    def __iter__(self) -> Iterator[Event]:
        while True:
            try:
                yield self.get()
            except ChannelClosed:
                return


class AsyncEventChannel:
    """asyncio counterpart of `EventChannel`; all users must share one event loop."""

    def __init__(self, buffer: int = 0) -> None:
        if buffer < 0:
            raise ValueError("buffer must be >= 0")
        self._unbuffered = buffer == 0
        self._maxsize = max(buffer, 1)
        self._items: deque[Event] = deque()
        self._cond = asyncio.Condition()
        self._closed = False
        self._sent = 0
        self._taken = 0

    @property
    def closed(self) -> bool:
        return self._closed

    async def put(self, event: Event) -> None:
        async with self._cond:
            await self._cond.wait_for(lambda: self._closed or len(self._items) < self._maxsize)
            if self._closed:
                raise ChannelClosed("send on closed channel")
            self._items.append(event)
            self._sent += 1
            ticket = self._sent
            self._cond.notify_all()
            if not self._unbuffered:
                return
            await self._cond.wait_for(lambda: self._taken >= ticket or self._closed)
            if self._taken < ticket:
                raise ChannelClosed("channel closed before the event was received")

    async def close(self) -> None:
        """Signal that no more events will be sent. Idempotent, never waits for consumers."""
        async with self._cond:
            self._closed = True
            self._cond.notify_all()

    async def get(self) -> Event:
        async with self._cond:
            await self._cond.wait_for(lambda: bool(self._items) or self._closed)
            if not self._items:
                raise ChannelClosed("channel closed")
            event = self._items.popleft()
            self._taken += 1
            self._cond.notify_all()
            return event

    def __aiter__(self) -> AsyncIterator[Event]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Event]:
        while True:
            try:
                yield await self.get()
            except ChannelClosed:
                return
