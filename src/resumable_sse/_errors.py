from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class SSEError(RuntimeError):
    """Base error of the library."""


class SSEConfigError(SSEError, ValueError):
    """Raised before any network activity when the subscription is misconfigured."""


class SSEConnectionError(SSEError):
    """
    The request to the event stream could not be performed.

    Never retried: reconnection only covers interrupted streams, not failures
    to establish one.
    """

    def __init__(self, url: str, cause: BaseException) -> None:
        super().__init__(f"error performing request for {url}: {cause}")
        self.url = url
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        return {"url": self.url, "cause": repr(self.cause)}


@dataclass(slots=True)
class SSEStatusError(SSEError):
    """
    The origin answered with something other than 200 OK.

    The body is captured when it can be read so that error pages served by
    proxies show up in logs.
    """

    url: str
    status_code: int
    body: str | None = None

    def __str__(self) -> str:
        return f"{self.url} returned unexpected status: {self.status_code}"

    def to_dict(self) -> dict[str, Any]:
        return {"url": self.url, "status_code": self.status_code, "body": self.body}

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500

    @property
    def is_server_error(self) -> bool:
        return 500 <= self.status_code < 600


@dataclass(slots=True)
class SSEContentTypeError(SSEError):
    """The response is not declared as `text/event-stream`."""

    url: str
    content_type: str

    def __str__(self) -> str:
        return f"{self.url} returned unexpected Content-Type: {self.content_type}"

    def to_dict(self) -> dict[str, Any]:
        return {"url": self.url, "content_type": self.content_type}


class SSEStreamError(SSEError):
    """Reading the response body failed after the stream was established."""

    def __init__(self, url: str, cause: BaseException) -> None:
        super().__init__(f"error reading stream from {url}: {cause}")
        self.url = url
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        return {"url": self.url, "cause": repr(self.cause)}
