"""
Retry utilities with tenacity.

Re-issues failed request attempts with exponential backoff and slows
the whole resource down when the server reports rate limiting.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from vespakit.core.config.models import RetryConfig
from vespakit.core.logging import get_logger

from .base import ApiError, HttpStatusError, RateLimitError, TransportError
from .throttling import ResourceThrottle

logger = get_logger("fetch.retries")

T = TypeVar("T")

# ResponseFormatError is never retried
RETRYABLE_ERRORS: tuple[type[Exception], ...] = (HttpStatusError, TransportError)


class RetryPolicy:
    """Bounded retry with exponential backoff.

    The wait before retry N (0-based) is ``base_delay * 2**N``. When an
    attempt fails with a rate-limit response and a throttle is attached,
    the resource's cooldown is doubled at once (before any retry is
    scheduled, and also after the last attempt), so every later call to
    that resource slows down as well.
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        throttle: ResourceThrottle | None = None,
        debug: bool = False,
        retry_on: tuple[type[Exception], ...] = RETRYABLE_ERRORS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config or RetryConfig()
        self.throttle = throttle
        self.debug = debug
        self.retry_on = retry_on
        self._sleep = sleep

    @property
    def max_attempts(self) -> int:
        return self.config.max_attempts

    @property
    def base_delay(self) -> float:
        return self.config.base_delay_ms / 1000.0

    def backoff(self, attempt_index: int) -> float:
        """Seconds to wait after the failed attempt with this 0-based index."""
        return self.base_delay * (2 ** attempt_index)

    def _log_attempt(self, retry_state: RetryCallState, resource: str | None) -> None:
        if not self.debug:
            return
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        status = getattr(exc, "status_code", None)
        body = exc.body_excerpt(self.config.log_body_chars) if isinstance(exc, ApiError) else ""
        logger.debug(
            "Attempt %d/%d failed: status=%s %s %s",
            retry_state.attempt_number,
            self.max_attempts,
            status,
            type(exc).__name__,
            body,
            extra={"resource": resource or "-", "attempt": retry_state.attempt_number},
        )

    def _before_sleep(
        self,
        retry_state: RetryCallState,
        resource: str | None,
        on_backoff: Callable[[int, float], None] | None,
    ) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            "Request failed (attempt %d/%d), retrying in %.0fms: %s",
            retry_state.attempt_number,
            self.max_attempts,
            delay * 1000,
            exc,
            extra={"resource": resource or "-"},
        )
        if on_backoff is not None:
            on_backoff(retry_state.attempt_number, delay)

    async def run(
        self,
        attempt: Callable[[], Awaitable[T]],
        resource: str | None = None,
        on_backoff: Callable[[int, float], None] | None = None,
    ) -> T:
        """Run ``attempt`` until it succeeds or attempts are exhausted.

        Args:
            attempt: Zero-argument coroutine factory performing one try
            resource: Logical resource key, used for cooldown escalation
            on_backoff: Called with (attempt_number, delay) before each wait

        Returns:
            The first successful result

        Raises:
            The last error once ``max_attempts`` attempts have failed;
            non-retryable errors are raised immediately.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay, exp_base=2, min=0),
            retry=retry_if_exception_type(self.retry_on),
            after=lambda state: self._log_attempt(state, resource),
            before_sleep=lambda state: self._before_sleep(state, resource, on_backoff),
            sleep=self._sleep,
            reraise=True,
        )

        async for try_ in retrying:
            with try_:
                try:
                    return await attempt()
                except RateLimitError:
                    # Every 429 counts, including one on the final attempt
                    if self.throttle is not None and resource:
                        self.throttle.escalate(resource)
                    raise

        # AsyncRetrying either returns or raises; this is unreachable
        raise RuntimeError("retry loop exited without a result")

