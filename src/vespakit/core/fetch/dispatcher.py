"""
Request dispatcher built on httpx.

Issues one HTTP request per logical call through the throttle and retry
policy, tracks every in-flight call as a cancellable operation, and
writes successful payloads to the response cache.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Generator

import httpx

from vespakit.core.logging import get_contextual_logger

from .base import (
    HttpStatusError,
    RateLimitError,
    RequestSpec,
    ResponseFormatError,
    TransportError,
    resource_key_for,
)
from .caching import ResponseCache
from .retries import RetryPolicy
from .throttling import ResourceThrottle

if TYPE_CHECKING:
    from vespakit.core.config.models import AppConfig


class OperationState(str, Enum):
    """Lifecycle of a dispatched operation."""

    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    WAITING_BACKOFF = "waiting_backoff"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = {OperationState.SUCCEEDED, OperationState.FAILED, OperationState.CANCELLED}


@dataclass(eq=False)
class PendingOperation:
    """Handle for one in-flight call.

    Await it for the payload, or call ``cancel()`` to abort the
    underlying request.
    """

    request_key: str
    resource: str
    started_at: float
    state: OperationState = OperationState.PENDING
    attempts: int = 0
    _on_cancel: Callable[["PendingOperation"], None] | None = field(default=None, repr=False)
    task: asyncio.Task[Any] = field(init=False, repr=False)

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_STATES

    def cancel(self) -> bool:
        """Abort the operation. Returns False if it had already settled."""
        if self.done:
            return False
        self.state = OperationState.CANCELLED
        self.task.cancel()
        if self._on_cancel is not None:
            self._on_cancel(self)
        return True

    def __await__(self) -> Generator[Any, None, Any]:
        return self.task.__await__()


class RequestContext:
    """Session-scoped request state.

    Owns the throttle state, the response cache and the table of
    in-flight operations. Create one per session (or per test) instead
    of sharing module-level globals.
    """

    def __init__(
        self,
        throttle: ResourceThrottle | None = None,
        cache: ResponseCache | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.clock = clock
        self.throttle = throttle or ResourceThrottle(clock=clock)
        self.cache = cache or ResponseCache(clock=clock)
        self.pending: dict[str, PendingOperation] = {}

    @classmethod
    def from_config(cls, config: "AppConfig") -> "RequestContext":
        return cls(
            throttle=ResourceThrottle(config.throttle),
            cache=ResponseCache(config.cache),
        )

    def _forget(self, op: PendingOperation) -> None:
        if self.pending.get(op.request_key) is op:
            del self.pending[op.request_key]


class RequestDispatcher:
    """Throttled, retrying, cancellable HTTP dispatcher.

    Features:
    - Minimum spacing between calls to the same logical resource
    - Exponential backoff retry with cooldown escalation on 429
    - Per-call cancellation and bulk cancellation by key prefix
    - Cache writes on success only
    """

    def __init__(
        self,
        context: RequestContext | None = None,
        retry: RetryPolicy | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        default_headers: dict[str, str] | None = None,
    ):
        self.context = context or RequestContext()
        self.retry = retry or RetryPolicy(throttle=self.context.throttle)
        if self.retry.throttle is None:
            self.retry.throttle = self.context.throttle
        self.timeout = timeout
        self.default_headers = dict(default_headers or {})
        self._client = client
        self._owns_client = client is None

    @classmethod
    def from_config(
        cls,
        config: "AppConfig",
        context: RequestContext | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> "RequestDispatcher":
        context = context or RequestContext.from_config(config)
        retry = RetryPolicy(config.retry, throttle=context.throttle, debug=config.debug)
        return cls(
            context=context,
            retry=retry,
            client=client,
            timeout=config.knack.timeout_seconds,
        )

    @property
    def cache(self) -> ResponseCache:
        return self.context.cache

    @property
    def throttle(self) -> ResourceThrottle:
        return self.context.throttle

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                limits=httpx.Limits(
                    max_connections=20,
                    max_keepalive_connections=10,
                ),
            )
            self._owns_client = True
        return self._client

    def _check_response(self, request: RequestSpec, response: httpx.Response) -> None:
        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            retry_seconds = None
            if retry_after:
                try:
                    retry_seconds = float(retry_after)
                except ValueError:
                    pass
            raise RateLimitError(
                "Rate limit exceeded",
                url=request.url,
                body=response.text,
                retry_after=retry_seconds,
            )

        if not response.is_success:
            raise HttpStatusError(
                f"API request failed: {response.status_code} {response.reason_phrase}",
                url=request.url,
                status_code=response.status_code,
                body=response.text,
            )

    async def _attempt(self, request: RequestSpec, op: PendingOperation) -> Any:
        """Perform exactly one throttled HTTP attempt."""
        await self.throttle.acquire(op.resource)
        op.state = OperationState.IN_FLIGHT
        op.attempts += 1

        client = await self._ensure_client()
        headers = {**self.default_headers, **request.headers}

        try:
            response = await client.request(
                request.method.upper(),
                request.url,
                headers=headers,
                params=request.params or None,
                json=request.json_data,
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"Timeout: {e}", url=request.url, cause=e) from e
        except httpx.TransportError as e:
            raise TransportError(f"Transport error: {e}", url=request.url, cause=e) from e

        self._check_response(request, response)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ResponseFormatError(
                "Response was not valid JSON",
                url=request.url,
                status_code=response.status_code,
                body=response.text,
                cause=e,
            ) from e

    async def _run(self, request: RequestSpec, op: PendingOperation, cache_key: str | None) -> Any:
        log = get_contextual_logger("fetch.dispatcher", resource=op.resource, request_key=op.request_key)

        def on_backoff(attempt_number: int, delay: float) -> None:
            op.state = OperationState.WAITING_BACKOFF

        try:
            payload = await self.retry.run(
                lambda: self._attempt(request, op),
                resource=op.resource,
                on_backoff=on_backoff,
            )
        except asyncio.CancelledError:
            op.state = OperationState.CANCELLED
            log.debug("Request cancelled: %s", request.describe())
            raise
        except Exception as e:
            op.state = OperationState.FAILED
            log.error("Request failed after %d attempt(s): %s", op.attempts, e)
            raise
        finally:
            self.context._forget(op)

        op.state = OperationState.SUCCEEDED
        if cache_key:
            self.cache.set(cache_key, payload)
        return payload

    def submit(
        self,
        request: RequestSpec,
        resource: str | None = None,
        request_key: str | None = None,
        cache_key: str | None = None,
    ) -> PendingOperation:
        """Dispatch a request in the background and return its handle.

        A second submit under a request key that is still in flight joins
        the existing operation instead of issuing another request.

        Must be called from a running event loop.
        """
        resource = resource or resource_key_for(request.url)
        request_key = request_key or f"{resource}:{uuid.uuid4().hex[:12]}"

        existing = self.context.pending.get(request_key)
        if existing is not None and not existing.done:
            return existing

        op = PendingOperation(
            request_key=request_key,
            resource=resource,
            started_at=self.context.clock(),
            _on_cancel=self.context._forget,
        )
        op.task = asyncio.create_task(
            self._run(request, op, cache_key),
            name=f"vespakit:{request_key}",
        )
        self.context.pending[request_key] = op
        return op

    async def request(
        self,
        request: RequestSpec,
        resource: str | None = None,
        request_key: str | None = None,
        cache_key: str | None = None,
    ) -> Any:
        """Return the payload for ``request``, from cache when fresh."""
        if cache_key:
            entry = self.cache.lookup(cache_key)
            if entry is not None:
                return entry.payload

        op = self.submit(request, resource=resource, request_key=request_key, cache_key=cache_key)
        return await op

    def cancel(self, request_key: str) -> bool:
        """Cancel one in-flight operation by its request key."""
        op = self.context.pending.get(request_key)
        if op is None:
            return False
        return op.cancel()

    def cancel_matching(self, prefix: str) -> int:
        """Cancel every in-flight operation whose key starts with ``prefix``.

        Returns:
            Number of operations cancelled
        """
        cancelled = 0
        for key in [k for k in self.context.pending if k.startswith(prefix)]:
            if self.cancel(key):
                cancelled += 1
        return cancelled

    def in_flight(self) -> list[PendingOperation]:
        return list(self.context.pending.values())

    async def close(self) -> None:
        """Cancel pending work and close the HTTP client if we own it."""
        for op in self.in_flight():
            op.cancel()
        if self._client is not None and self._owns_client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "RequestDispatcher":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
