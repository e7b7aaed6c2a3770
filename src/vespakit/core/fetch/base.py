"""
Request/response data structures and the fetch error hierarchy.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse


@dataclass
class RequestSpec:
    """Specification for an HTTP request."""

    url: str
    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, Any] = field(default_factory=dict)
    json_data: Any = None

    def describe(self) -> str:
        return f"{self.method.upper()} {self.url}"


def resource_key_for(url: str) -> str:
    """Derive the logical resource key used for throttling.

    Knack record URLs are grouped by object key, so
    ``.../objects/object_6/records/abc`` and ``.../objects/object_6/records``
    share the ``object_6`` cooldown. Anything else is keyed by host + path.
    """
    parsed = urlparse(url)
    segments = [s for s in parsed.path.split("/") if s]
    if "objects" in segments:
        idx = segments.index("objects")
        if idx + 1 < len(segments):
            return segments[idx + 1]
    return f"{parsed.netloc}{parsed.path}" or url


class ApiError(Exception):
    """Base exception for request failures.

    Carries the HTTP status (None for transport failures) and the
    response body text so retry and UI layers can interpret it.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        body: str = "",
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.body = body
        self.cause = cause

    def body_excerpt(self, limit: int = 200) -> str:
        if len(self.body) <= limit:
            return self.body
        return self.body[:limit] + "..."


class HttpStatusError(ApiError):
    """Server answered with a non-2xx status."""
    pass


class RateLimitError(HttpStatusError):
    """Server signalled overload (429)."""

    def __init__(
        self,
        message: str,
        url: str | None = None,
        body: str = "",
        retry_after: float | None = None,
    ):
        super().__init__(message, url, status_code=429, body=body)
        self.retry_after = retry_after


class TransportError(ApiError):
    """Network-level failure: no HTTP response was received."""
    pass


class ResponseFormatError(ApiError):
    """Response body was not the JSON we expected."""
    pass
