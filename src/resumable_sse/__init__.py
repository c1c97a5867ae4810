from __future__ import annotations

from resumable_sse._channel import (
    AsyncEventChannel,
    AsyncEventSink,
    ChannelClosed,
    EventChannel,
    EventSink,
)
from resumable_sse._client import HttpConfig
from resumable_sse._errors import (
    SSEConfigError,
    SSEConnectionError,
    SSEContentTypeError,
    SSEError,
    SSEStatusError,
    SSEStreamError,
)
from resumable_sse._events import Event, SessionState
from resumable_sse._sse import SSEDecoder, decode_bytes
from resumable_sse.connector import (
    AsyncSSEConnector,
    SSEConnector,
    StreamOptions,
    Subscription,
    anotify,
    notify,
    subscribe,
)

__all__ = [
    "AsyncEventChannel",
    "AsyncEventSink",
    "AsyncSSEConnector",
    "ChannelClosed",
    "Event",
    "EventChannel",
    "EventSink",
    "HttpConfig",
    "SSEConfigError",
    "SSEConnectionError",
    "SSEConnector",
    "SSEContentTypeError",
    "SSEDecoder",
    "SSEError",
    "SSEStatusError",
    "SSEStreamError",
    "SessionState",
    "StreamOptions",
    "Subscription",
    "anotify",
    "decode_bytes",
    "notify",
    "subscribe",
]

__version__ = "0.1.0"
