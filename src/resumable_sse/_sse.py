"""
Incremental decoder for the `text/event-stream` line protocol.

Bytes go in as arbitrary chunks, complete events come out in stream order.
The decoder is a two-state machine: `Idle` while no event is being built and
`Assembling` once an `event` or `data` field has been seen. A blank line
dispatches the event being assembled and returns to `Idle`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import AsyncIterable, AsyncIterator, Iterable, Iterator, Union

from resumable_sse._events import Event, SessionState

logger = logging.getLogger(__name__)

EVENT_FIELD = "event"
DATA_FIELD = "data"
ID_FIELD = "id"
RETRY_FIELD = "retry"

LINE_TERMINATOR = b"\n"
COMMENT_MARKER = b":"
FIELD_DELIMITER = b":"

_MAX_RETRY_MS = 2**64 - 1


class LineSplitter:
    """
    Splits a chunked byte stream into `\\n` terminated lines.

    Only `\\n` ends a line; `\\r` is kept as part of the line. Bytes after the
    last terminator stay pending and are dropped if the stream ends there.
    """

    def __init__(self) -> None:
        self._pending = bytearray()

    @property
    def pending(self) -> bytes:
        return bytes(self._pending)

    def feed(self, chunk: bytes) -> list[bytes]:
        self._pending.extend(chunk)
        lines: list[bytes] = []
        start = 0
        while True:
            end = self._pending.find(LINE_TERMINATOR, start)
            if end < 0:
                break
            lines.append(bytes(self._pending[start:end + 1]))
            start = end + 1
        del self._pending[:start]
        return lines


@dataclass(frozen=True, slots=True)
class Idle:
    """No event is being assembled."""


@dataclass(slots=True)
class Assembling:
    """Fields of the event being assembled."""

    type: str = ""
    data: bytearray = field(default_factory=bytearray)


DecoderState = Union[Idle, Assembling]

IDLE = Idle()


def _parse_retry(value: bytes) -> int | None:
    # unsigned base-10 only: no sign, no whitespace, no underscores
    if not value or not value.isdigit():
        return None
    millis = int(value)
    if millis > _MAX_RETRY_MS:
        return None
    return millis


def split_field(line: bytes) -> tuple[str, bytes]:
    """
    Split a field line (without its terminator) into name and value.

    Everything after the first delimiter is the value; a single leading space
    is removed from it. A line without delimiter is a name with an empty value.
    """
    name, _, value = line.partition(FIELD_DELIMITER)
    if value[:1] == b" ":
        value = value[1:]
    return name.decode("utf-8", "replace"), value


class SSEDecoder:
    """
    Turns lines of an event stream into `Event` values.

    Args:
        origin: Identifier stamped on every event (usually the stream URL).
        state: Session state inherited from a previous connection.
        log: Logger for per-line debug output; defaults to the module logger.
    """

    def __init__(
        self,
        origin: str,
        state: SessionState | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        self.origin = origin
        self._log = log or logger
        self._state = state or SessionState()
        self._current: DecoderState = IDLE

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def current(self) -> DecoderState:
        return self._current

    def feed_line(self, line: bytes) -> Event | None:
        """Process one line including its terminator; return an event when one is dispatched."""
        if line == LINE_TERMINATOR:
            return self._dispatch()

        if line.startswith(COMMENT_MARKER):
            self._log.debug("comment, ignoring")
            return None

        self._log.debug("received line of length %d", len(line))
        if line.endswith(LINE_TERMINATOR):
            line = line[:-1]
        name, value = split_field(line)

        if name == RETRY_FIELD:
            millis = _parse_retry(value)
            if millis is None:
                self._log.debug("failed to parse retry field as unsigned integer: %r, ignoring", value)
            else:
                self._state = self._state.with_reconnect_wait_ms(millis)
        elif name == ID_FIELD:
            self._state = self._state.with_last_event_id(value.decode("utf-8", "replace"))
        elif name == EVENT_FIELD:
            self._assembling().type = value.decode("utf-8", "replace")
        elif name == DATA_FIELD:
            data = self._assembling().data
            data.extend(value)
            data.extend(LINE_TERMINATOR)
        return None

    def discard(self) -> None:
        """Drop the event being assembled, if any."""
        self._current = IDLE

    def iter_events(self, chunks: Iterable[bytes]) -> Iterator[Event]:
        """
        Decode a byte stream lazily.

        Events are yielded as soon as their dispatching blank line is read.
        Errors raised by `chunks` propagate unchanged; `state` keeps every
        `id`/`retry` update seen up to that point. An event that was not
        dispatched before the stream ended is discarded.
        """
        splitter = LineSplitter()
        try:
            for chunk in chunks:
                for line in splitter.feed(chunk):
                    event = self.feed_line(line)
                    if event is not None:
                        yield event
        finally:
            self.discard()

    async def aiter_events(self, chunks: AsyncIterable[bytes]) -> AsyncIterator[Event]:
        """Async counterpart of `iter_events`."""
        splitter = LineSplitter()
        try:
            async for chunk in chunks:
                for line in splitter.feed(chunk):
                    event = self.feed_line(line)
                    if event is not None:
                        yield event
        finally:
            self.discard()

    def _assembling(self) -> Assembling:
        if isinstance(self._current, Idle):
            self._current = Assembling()
        return self._current

    def _dispatch(self) -> Event | None:
        current = self._current
        if isinstance(current, Idle):
            return None

        self._log.debug("received new event")
        data = bytes(current.data)
        if data:
            data = data[:-1]
        self._current = IDLE
        return Event(
            origin=self.origin,
            id=self._state.last_event_id,
            type=current.type,
            data=data,
        )


def decode_bytes(
    payload: bytes | str,
    origin: str = "",
    state: SessionState | None = None,
) -> tuple[list[Event], SessionState]:
    """
    Decode a complete event-stream body held in memory.

    Args:
        payload: The raw body; `str` is encoded as UTF-8.
        origin: Identifier stamped on the events.
        state: Session state to start from.

    Returns:
        The dispatched events and the resulting session state.
    """
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    decoder = SSEDecoder(origin, state)
    events = list(decoder.iter_events([payload]))
    return events, decoder.state
