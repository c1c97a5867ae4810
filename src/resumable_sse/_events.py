"""
Value types shared by the decoder and the connector.

`Event` is what subscribers receive; `SessionState` is the small piece of
state that survives reconnections (resumption marker and reconnection wait).
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from typing import Any

DEFAULT_RECONNECT_WAIT_MS = 1000


@dataclass(frozen=True, slots=True)
class Event:
    """
    A single dispatched server-sent event.

    Attributes:
        origin: Address of the stream the event was read from.
        id: Resumption marker in effect when the event was dispatched (may be empty).
        type: Value of the last `event` field of the event, empty when absent.
        data: Concatenated `data` values joined by newlines.
    """

    origin: str
    id: str = ""
    type: str = ""
    data: bytes = b""

    @property
    def text(self) -> str:
        return self.data.decode("utf-8", "replace")

    def json(self) -> Any:
        return json.loads(self.data)


@dataclass(frozen=True, slots=True)
class SessionState:
    """
    State carried from one connection attempt to the next.

    Neither field is ever reset implicitly: only `id` and `retry` fields
    sent by the origin change them.
    """

    last_event_id: str = ""
    reconnect_wait_ms: int = DEFAULT_RECONNECT_WAIT_MS

    @property
    def reconnect_wait_s(self) -> float:
        return self.reconnect_wait_ms / 1000.0

    def with_last_event_id(self, last_event_id: str) -> SessionState:
        return replace(self, last_event_id=last_event_id)

    def with_reconnect_wait_ms(self, reconnect_wait_ms: int) -> SessionState:
        return replace(self, reconnect_wait_ms=reconnect_wait_ms)
