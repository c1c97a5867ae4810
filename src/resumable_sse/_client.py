from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Mapping

import httpx

from resumable_sse._auth import AuthConfig
from resumable_sse._errors import (
    SSEConfigError,
    SSEConnectionError,
    SSEContentTypeError,
    SSEStatusError,
)

logger = logging.getLogger(__name__)

EVENT_STREAM_MEDIA_TYPE = "text/event-stream"
LAST_EVENT_ID_HEADER = "Last-Event-ID"
ENV_HTTP_DEBUG = "RESUMABLE_SSE_HTTP_DEBUG"

_MAX_ERROR_BODY = 4096


@dataclass(frozen=True, slots=True)
class HttpConfig:
    # An event stream may legitimately stay silent for a long time, so reads
    # are unbounded unless a read timeout is given.
    connect_timeout_s: float = 10.0
    read_timeout_s: float | None = None

    def timeout(self) -> httpx.Timeout:
        return httpx.Timeout(self.connect_timeout_s, read=self.read_timeout_s)


def media_type(content_type: str) -> str:
    """Return the lower-cased media type of a Content-Type value, without parameters."""
    return content_type.split(";", 1)[0].strip().lower()


def _http_debug_enabled() -> bool:
    return os.getenv(ENV_HTTP_DEBUG, "").lower() in {"1", "true", "yes", "on"}


def _redact_headers(headers: Mapping[str, Any]) -> dict[str, Any]:
    out = dict(headers)
    for k in ("authorization", "Authorization"):
        if k in out:
            out[k] = "Bearer ***REDACTED***"
    return out


def _log_request(request: httpx.Request) -> None:
    logger.warning("HTTPX REQUEST %s %s", request.method, request.url)
    logger.warning("HTTPX REQUEST headers=%s", _redact_headers(dict(request.headers)))


def _log_response(response: httpx.Response) -> None:
    req = response.request
    logger.warning("HTTPX RESPONSE %s %s -> %s", req.method, req.url, response.status_code)
    logger.warning("HTTPX RESPONSE headers=%s", dict(response.headers))


async def _log_request_async(request: httpx.Request) -> None:
    _log_request(request)


async def _log_response_async(response: httpx.Response) -> None:
    _log_response(response)


EventHooksDict = dict[str, list[Callable[..., Any]]]


def debug_event_hooks() -> tuple[EventHooksDict, EventHooksDict]:
    """
    httpx event hooks for the sync and async clients.

    Hooks are only installed when RESUMABLE_SSE_HTTP_DEBUG is on. Response
    bodies are never logged since reading them would consume the stream.
    """
    if not _http_debug_enabled():
        return {}, {}
    hooks_sync: EventHooksDict = {"request": [_log_request], "response": [_log_response]}
    hooks_async: EventHooksDict = {"request": [_log_request_async], "response": [_log_response_async]}
    return hooks_sync, hooks_async


class SSEHttpClient:
    """
    Thin httpx wrapper used by the connectors:
    - builds event-stream requests (Accept, Last-Event-ID, auth)
    - sends them in streaming mode
    - validates status and Content-Type

    Clients passed in are borrowed and never closed here.
    """

    def __init__(
        self,
        *,
        config: HttpConfig | None = None,
        auth: AuthConfig | None = None,
        client: httpx.Client | None = None,
        aclient: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or HttpConfig()
        self._auth = auth or AuthConfig()
        self._client = client
        self._aclient = aclient
        self._owns_client = client is None
        self._owns_aclient = aclient is None

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            hooks_sync, _ = debug_event_hooks()
            self._client = httpx.Client(timeout=self._config.timeout(), event_hooks=hooks_sync)
        return self._client

    @property
    def aclient(self) -> httpx.AsyncClient:
        if self._aclient is None:
            _, hooks_async = debug_event_hooks()
            self._aclient = httpx.AsyncClient(timeout=self._config.timeout(), event_hooks=hooks_async)
        return self._aclient

    def close(self) -> None:
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None

    async def aclose(self) -> None:
        if self._owns_aclient and self._aclient is not None:
            await self._aclient.aclose()
            self._aclient = None

    def _headers(self, last_event_id: str, extra: Mapping[str, str] | None) -> httpx.Headers:
        headers = httpx.Headers(extra or {})
        headers.update(self._auth.headers())
        headers["Accept"] = EVENT_STREAM_MEDIA_TYPE
        headers["Cache-Control"] = "no-cache"
        if last_event_id:
            headers[LAST_EVENT_ID_HEADER] = last_event_id
        return headers

    def build_request(
        self,
        url: str,
        *,
        method: str = "GET",
        last_event_id: str = "",
        headers: Mapping[str, str] | None = None,
        timeout_s: float | None = None,
        asynchronous: bool = False,
    ) -> httpx.Request:
        """
        Build the request for one connection attempt.

        `Accept` is always `text/event-stream`, whatever `headers` says.
        `timeout_s` overrides every client timeout for this request only.
        """
        client: httpx.Client | httpx.AsyncClient = self.aclient if asynchronous else self.client
        try:
            return client.build_request(
                method,
                url,
                headers=self._headers(last_event_id, headers),
                timeout=httpx.USE_CLIENT_DEFAULT if timeout_s is None else httpx.Timeout(timeout_s),
            )
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            raise SSEConfigError(f"error getting sse request: {e}") from e

    def open_stream(self, request: httpx.Request) -> httpx.Response:
        try:
            return self.client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise SSEConnectionError(str(request.url), e) from e

    async def aopen_stream(self, request: httpx.Request) -> httpx.Response:
        try:
            return await self.aclient.send(request, stream=True)
        except httpx.HTTPError as e:
            raise SSEConnectionError(str(request.url), e) from e

    @staticmethod
    def check_content_type(url: str, resp: httpx.Response) -> None:
        content_type = resp.headers.get("content-type", "")
        if media_type(content_type) != EVENT_STREAM_MEDIA_TYPE:
            raise SSEContentTypeError(url=url, content_type=content_type)

    @staticmethod
    def check_response(url: str, resp: httpx.Response) -> None:
        """Raise SSEStatusError / SSEContentTypeError for a response that is not an event stream."""
        if resp.status_code != 200:
            body_text: str | None = None
            try:
                resp.read()
                body_text = resp.text[:_MAX_ERROR_BODY]
            except (httpx.HTTPError, UnicodeDecodeError):
                body_text = None
            raise SSEStatusError(url=url, status_code=resp.status_code, body=body_text)
        SSEHttpClient.check_content_type(url, resp)

    @staticmethod
    async def acheck_response(url: str, resp: httpx.Response) -> None:
        if resp.status_code != 200:
            body_text: str | None = None
            try:
                await resp.aread()
                body_text = resp.text[:_MAX_ERROR_BODY]
            except (httpx.HTTPError, UnicodeDecodeError):
                body_text = None
            raise SSEStatusError(url=url, status_code=resp.status_code, body=body_text)
        SSEHttpClient.check_content_type(url, resp)
