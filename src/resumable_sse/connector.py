"""
Reconnecting subscriptions to `text/event-stream` endpoints.

A connector opens the stream, validates the response, decodes it and, when
reconnection is enabled, waits for the server-suggested delay and connects
again with the last seen event id so the origin can resume where it left off.

Example (sync)::

    with subscribe("https://example.com/events") as sub:
        for event in sub:
            print(event.id, event.type, event.text)

Example (async)::

    channel = AsyncEventChannel()
    connector = AsyncSSEConnector("https://example.com/events")
    task = asyncio.create_task(connector.run(channel))
    async for event in channel:
        ...
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import AsyncIterator, Iterator, Literal, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, PositiveFloat

from resumable_sse._auth import AuthConfig
from resumable_sse._channel import AsyncEventSink, ChannelClosed, EventChannel, EventSink
from resumable_sse._client import HttpConfig, SSEHttpClient
from resumable_sse._errors import SSEConfigError, SSEStreamError
from resumable_sse._events import DEFAULT_RECONNECT_WAIT_MS, Event, SessionState
from resumable_sse._sse import SSEDecoder

logger = logging.getLogger(__name__)


class StreamOptions(BaseModel):
    """
    Per-subscription options.

    `retry_ms` and `last_event_id` seed the session state; the origin may
    change both while the subscription runs. `timeout_s`, when set, replaces
    the client timeouts for every connection attempt.
    """
    model_config = ConfigDict(extra="forbid")
    reconnect: bool = True
    method: Literal["GET", "POST"] = "GET"
    headers: dict[str, str] = Field(default_factory=dict)
    retry_ms: NonNegativeInt = DEFAULT_RECONNECT_WAIT_MS
    last_event_id: str = ""
    timeout_s: Optional[PositiveFloat] = None


def _iter_body(url: str, response: httpx.Response) -> Iterator[bytes]:
    try:
        yield from response.iter_bytes()
    except httpx.RequestError as e:
        raise SSEStreamError(url, e) from e


async def _aiter_body(url: str, response: httpx.Response) -> AsyncIterator[bytes]:
    try:
        async for chunk in response.aiter_bytes():
            yield chunk
    except httpx.RequestError as e:
        raise SSEStreamError(url, e) from e


class _BaseConnector:
    def __init__(
        self,
        url: str,
        *,
        options: StreamOptions | None = None,
        token: str | None = None,
        http_config: HttpConfig | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        self.url = url
        self.options = options or StreamOptions()
        self.attempts = 0
        self._auth = AuthConfig.from_env_or_value(token)
        self._http_config = http_config or HttpConfig()
        self._log = log or logger
        self._state = SessionState(
            last_event_id=self.options.last_event_id,
            reconnect_wait_ms=self.options.retry_ms,
        )

    @property
    def state(self) -> SessionState:
        """Session state after the most recent decode pass."""
        return self._state

    def _decoder(self) -> SSEDecoder:
        return SSEDecoder(self.url, self._state, log=self._log)

    def _reconnect_wait_s(self) -> float:
        # waits longer than the platform allows are capped
        return min(self._state.reconnect_wait_s, threading.TIMEOUT_MAX)


class SSEConnector(_BaseConnector):
    """
    Blocking connector; `run` returns only when the subscription is over.

    Args:
        url: Address of the event stream.
        options: Reconnection and request options.
        token: Bearer token; falls back to RESUMABLE_SSE_TOKEN.
        http_config: Timeouts for the client created when `client` is None.
        client: httpx client to borrow instead of creating one.
        log: Logger for connection and decoding messages.
        stop_event: Cancellation signal, checked between connection attempts.
    """

    def __init__(
        self,
        url: str,
        *,
        options: StreamOptions | None = None,
        token: str | None = None,
        http_config: HttpConfig | None = None,
        client: httpx.Client | None = None,
        log: logging.Logger | None = None,
        stop_event: threading.Event | None = None,
    ) -> None:
        super().__init__(url, options=options, token=token, http_config=http_config, log=log)
        self._http = SSEHttpClient(config=self._http_config, auth=self._auth, client=client)
        self._stop = stop_event or threading.Event()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        """
        Ask the connector to stop at the next reconnection boundary.

        Events of the stream currently being read are still delivered; the
        reconnection wait, if one is in progress, is cut short.
        """
        self._stop.set()

    def run(self, sink: EventSink | None) -> None:
        """
        Deliver events to `sink` until the subscription ends.

        Raises:
            SSEConfigError: `sink` is None.
            SSEConnectionError: A connection attempt failed.
            SSEStatusError: The origin answered with a status other than 200.
            SSEContentTypeError: The response is not an event stream.
            SSEStreamError: Reading failed and reconnection is disabled.
        """
        if sink is None:
            raise SSEConfigError("nil event sink given")

        try:
            while True:
                error = self._attempt(sink)
                if not self.options.reconnect:
                    if error is not None:
                        raise error
                    return
                if self._stop.is_set():
                    return
                if error is not None:
                    self._log.warning("error: %s, reconnecting", error)
                # wait before reconnecting according to the current reconnection time
                if self._stop.wait(self._reconnect_wait_s()):
                    return
        finally:
            self._http.close()

    def _attempt(self, sink: EventSink) -> SSEStreamError | None:
        request = self._http.build_request(
            self.url,
            method=self.options.method,
            last_event_id=self._state.last_event_id,
            headers=self.options.headers,
            timeout_s=self.options.timeout_s,
        )
        self.attempts += 1
        response = self._http.open_stream(request)
        try:
            self._http.check_response(self.url, response)
            self._log.debug("connected, reading lines")
            decoder = self._decoder()
            try:
                for event in decoder.iter_events(_iter_body(self.url, response)):
                    self._state = decoder.state
                    sink.put(event)
            except SSEStreamError as e:
                return e
            finally:
                self._state = decoder.state
        finally:
            response.close()
        return None


class AsyncSSEConnector(_BaseConnector):
    """asyncio counterpart of `SSEConnector`; `run` awaits the whole subscription."""

    def __init__(
        self,
        url: str,
        *,
        options: StreamOptions | None = None,
        token: str | None = None,
        http_config: HttpConfig | None = None,
        client: httpx.AsyncClient | None = None,
        log: logging.Logger | None = None,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        super().__init__(url, options=options, token=token, http_config=http_config, log=log)
        self._http = SSEHttpClient(config=self._http_config, auth=self._auth, aclient=client)
        self._stop = stop_event or asyncio.Event()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        """
        Ask the connector to stop at the next reconnection boundary.

        Events of the stream currently being read are still delivered; the
        reconnection wait, if one is in progress, is cut short.
        """
        self._stop.set()

    async def run(self, sink: AsyncEventSink | None) -> None:
        """
        Deliver events to `sink` until the subscription ends.

        Raises:
            SSEConfigError: `sink` is None.
            SSEConnectionError: A connection attempt failed.
            SSEStatusError: The origin answered with a status other than 200.
            SSEContentTypeError: The response is not an event stream.
            SSEStreamError: Reading failed and reconnection is disabled.
        """
        if sink is None:
            raise SSEConfigError("nil event sink given")

        try:
            while True:
                error = await self._attempt(sink)
                if not self.options.reconnect:
                    if error is not None:
                        raise error
                    return
                if self._stop.is_set():
                    return
                if error is not None:
                    self._log.warning("error: %s, reconnecting", error)
                if await self._wait_or_stop(self._reconnect_wait_s()):
                    return
        finally:
            await self._http.aclose()

    async def _wait_or_stop(self, timeout: float) -> bool:
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def _attempt(self, sink: AsyncEventSink) -> SSEStreamError | None:
        request = self._http.build_request(
            self.url,
            method=self.options.method,
            last_event_id=self._state.last_event_id,
            headers=self.options.headers,
            timeout_s=self.options.timeout_s,
            asynchronous=True,
        )
        self.attempts += 1
        response = await self._http.aopen_stream(request)
        try:
            await self._http.acheck_response(self.url, response)
            self._log.debug("connected, reading lines")
            decoder = self._decoder()
            try:
                async for event in decoder.aiter_events(_aiter_body(self.url, response)):
                    self._state = decoder.state
                    await sink.put(event)
            except SSEStreamError as e:
                return e
            finally:
                self._state = decoder.state
        finally:
            await response.aclose()
        return None


class Subscription:
    """
    Runs an `SSEConnector` on a worker thread and exposes its events.

    Iterating yields events in stream order until the subscription ends; if it
    ended with an error, the error is raised once the delivered events have
    been consumed.
    """

    def __init__(self, connector: SSEConnector, *, buffer: int = 0) -> None:
        self.connector = connector
        self.channel = EventChannel(buffer)
        self.error: Optional[BaseException] = None
        self._thread = threading.Thread(target=self._run, name=f"sse:{connector.url}", daemon=True)

    def start(self) -> Subscription:
        self._thread.start()
        return self

    def stop(self) -> None:
        """Stop reconnecting; events of the current stream are still delivered."""
        self.connector.stop()

    def close(self, timeout: float | None = None) -> None:
        """
        Abandon the subscription.

        Undelivered events are dropped and a worker blocked on delivery is
        released, so the response and the client get closed. Waits up to
        `timeout` for the worker to finish.
        """
        self.connector.stop()
        self.channel.close()
        if self._thread.is_alive():
            self._thread.join(timeout)

    def join(self, timeout: float | None = None) -> None:
        self._thread.join(timeout)

    def _run(self) -> None:
        try:
            self.connector.run(self.channel)
        except ChannelClosed as e:
            # closed by the consumer: an intentional end, not a failure
            if not self.connector.stopped:
                self.error = e
        except Exception as e:
            self.error = e
        finally:
            self.channel.close()

    def __iter__(self) -> Iterator[Event]:
        yield from self.channel
        self._thread.join()
        if self.error is not None:
            raise self.error

    def __enter__(self) -> Subscription:
        return self.start()

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def notify(
    url: str,
    sink: EventSink | None,
    *,
    reconnect: bool = True,
    stop_event: threading.Event | None = None,
    client: httpx.Client | None = None,
    token: str | None = None,
) -> None:
    """
    Deliver the events of `url` to `sink`, blocking until the stream ends.

    With `reconnect`, interrupted streams are resumed until `stop_event` is set
    or a fatal error occurs.
    """
    connector = SSEConnector(
        url,
        options=StreamOptions(reconnect=reconnect),
        token=token,
        client=client,
        stop_event=stop_event,
    )
    connector.run(sink)


async def anotify(
    url: str,
    sink: AsyncEventSink | None,
    *,
    reconnect: bool = True,
    stop_event: asyncio.Event | None = None,
    client: httpx.AsyncClient | None = None,
    token: str | None = None,
) -> None:
    connector = AsyncSSEConnector(
        url,
        options=StreamOptions(reconnect=reconnect),
        token=token,
        client=client,
        stop_event=stop_event,
    )
    await connector.run(sink)


def subscribe(
    url: str,
    *,
    options: StreamOptions | None = None,
    token: str | None = None,
    client: httpx.Client | None = None,
    buffer: int = 0,
) -> Subscription:
    """Create a `Subscription` to `url`; use it as a context manager or call `start()`."""
    connector = SSEConnector(url, options=options, token=token, client=client)
    return Subscription(connector, buffer=buffer)


__all__ = [
    "AsyncSSEConnector",
    "SSEConnector",
    "StreamOptions",
    "Subscription",
    "anotify",
    "notify",
    "subscribe",
]
