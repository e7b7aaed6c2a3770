"""
Debounce policy for bursty triggers.

Rapid triggers (e.g. several navigation events for the same student)
collapse into one call made ``wait`` seconds after the last trigger,
using the most recent arguments.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from vespakit.core.logging import get_logger

logger = get_logger("scheduler.debounce")


class Debouncer:
    """Collapse repeated triggers into a single delayed call."""

    def __init__(
        self,
        func: Callable[..., Awaitable[Any]],
        wait: float,
        name: str | None = None,
    ):
        self.func = func
        self.wait = wait
        self.name = name or getattr(func, "__name__", "debounced")
        self._timer: asyncio.Task[Any] | None = None
        self._started: asyncio.Task[Any] | None = None
        self.last_result: Any = None
        self._args: tuple[Any, ...] = ()
        self._kwargs: dict[str, Any] = {}

    @property
    def pending(self) -> bool:
        """Whether a call is scheduled but has not started yet."""
        return (
            self._timer is not None
            and not self._timer.done()
            and self._timer is not self._started
        )

    def trigger(self, *args: Any, **kwargs: Any) -> None:
        """Schedule a call, restarting the wait if one is already scheduled."""
        self._args = args
        self._kwargs = kwargs
        if self.pending:
            self._timer.cancel()
        self._timer = asyncio.create_task(self._fire_later(), name=f"debounce:{self.name}")

    def cancel(self) -> bool:
        """Drop a scheduled call. A call already running is not affected."""
        if not self.pending:
            return False
        self._timer.cancel()
        self._timer = None
        return True

    async def _fire_later(self) -> Any:
        await asyncio.sleep(self.wait)
        self._started = asyncio.current_task()
        return await self._call()

    async def _call(self) -> Any:
        try:
            self.last_result = await self.func(*self._args, **self._kwargs)
        except Exception:
            logger.exception("Debounced call %s failed", self.name)
            self.last_result = None
        return self.last_result

    async def flush(self) -> Any:
        """Run a scheduled call immediately and return its result."""
        if not self.cancel():
            return None
        return await self._call()

    async def join(self) -> Any:
        """Wait for the scheduled call, following any re-triggers."""
        result = None
        while self._timer is not None:
            timer = self._timer
            try:
                result = await timer
            except asyncio.CancelledError:
                if not timer.cancelled():
                    raise
            if self._timer is timer:
                break
        return result
