"""
Per-resource request throttling.

Enforces a minimum spacing between dispatches to the same logical
resource, with a cooldown that grows when the server rate-limits us.
"""

from __future__ import annotations

import asyncio
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Awaitable, Callable

from vespakit.core.config.models import ThrottleConfig
from vespakit.core.logging import get_logger

logger = get_logger("fetch.throttling")


@dataclass
class ResourceThrottleState:
    """Pacing bookkeeping for one logical resource."""

    resource: str
    cooldown: float  # seconds
    last_request: float | None = None


class ResourceThrottle:
    """Per-resource cooldown enforcement.

    Features:
    - Minimum delay between dispatches to the same resource
    - Cooldown doubling on rate limiting, capped at a ceiling
    - Unrelated resources never wait on each other
    - Async-safe with a lock per resource
    """

    def __init__(
        self,
        config: ThrottleConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config or ThrottleConfig()
        self._clock = clock
        self._sleep = sleep
        self._states: dict[str, ResourceThrottleState] = {}
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @property
    def base_cooldown(self) -> float:
        return self.config.base_cooldown_ms / 1000.0

    @property
    def max_cooldown(self) -> float:
        return self.config.max_cooldown_ms / 1000.0

    def state(self, resource: str) -> ResourceThrottleState:
        """Get or create the throttle state for a resource."""
        if resource not in self._states:
            self._states[resource] = ResourceThrottleState(
                resource=resource,
                cooldown=self.base_cooldown,
            )
        return self._states[resource]

    def cooldown(self, resource: str) -> float:
        """Current cooldown for a resource in seconds."""
        return self.state(resource).cooldown

    def wait_time(self, resource: str) -> float:
        """Seconds until the resource may be dispatched again."""
        state = self.state(resource)
        if state.last_request is None:
            return 0.0
        elapsed = self._clock() - state.last_request
        return max(0.0, state.cooldown - elapsed)

    async def acquire(self, resource: str) -> float:
        """Wait until the resource's cooldown has elapsed, then mark a dispatch.

        The dispatch timestamp is recorded here, before the request is
        sent, so spacing is measured between dispatches rather than
        completions.

        Returns:
            Seconds spent waiting
        """
        waited = 0.0
        async with self._locks[resource]:
            wait = self.wait_time(resource)
            while wait > 0:
                logger.debug(
                    "Throttling request to %s - waiting %.0fms",
                    resource,
                    wait * 1000,
                    extra={"resource": resource},
                )
                await self._sleep(wait)
                waited += wait
                # Cooldown may have grown while we slept
                wait = self.wait_time(resource)

            self.state(resource).last_request = self._clock()
        return waited

    def escalate(self, resource: str) -> float:
        """Double the resource's cooldown after a rate-limit response.

        Returns:
            The new cooldown in seconds
        """
        state = self.state(resource)
        state.cooldown = min(state.cooldown * 2, self.max_cooldown)
        logger.info(
            "Rate limited on %s, cooldown now %.0fms",
            resource,
            state.cooldown * 1000,
            extra={"resource": resource},
        )
        return state.cooldown

    def reset(self, resource: str | None = None) -> None:
        """Forget pacing state for one resource, or all of them."""
        if resource is None:
            self._states.clear()
        else:
            self._states.pop(resource, None)

    def stats(self, resource: str | None = None) -> dict[str, object]:
        """Get throttle statistics."""
        if resource:
            state = self.state(resource)
            return {
                "resource": resource,
                "cooldown_ms": state.cooldown * 1000,
                "last_request": state.last_request,
            }

        return {
            "resources_tracked": len(self._states),
            "escalated": sorted(
                r for r, s in self._states.items() if s.cooldown > self.base_cooldown
            ),
        }
