"""Shared test fixtures and dummy classes."""

from __future__ import annotations

import time
from typing import Any, Callable, Union

import httpx

from vespakit.core.config import AppConfig
from vespakit.core.fetch import RequestContext, RequestDispatcher


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Sleep replacement that records requested delays without waiting."""

    def __init__(self, clock: FakeClock | None = None) -> None:
        self.clock = clock
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds)


Reply = Union[httpx.Response, Exception, Callable[[httpx.Request], httpx.Response]]


class DummyKnack:
    """MockTransport handler that replays queued replies and records requests."""

    def __init__(
        self,
        replies: list[Reply] | None = None,
        default: Callable[[httpx.Request], httpx.Response] | None = None,
    ) -> None:
        self.replies: list[Reply] = list(replies or [])
        self.default = default or (lambda request: httpx.Response(200, json={}))
        self.requests: list[httpx.Request] = []
        self.times: list[float] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.times.append(time.monotonic())
        reply = self.replies.pop(0) if self.replies else self.default
        if isinstance(reply, Exception):
            raise reply
        if callable(reply) and not isinstance(reply, httpx.Response):
            return reply(request)
        return reply

    @property
    def calls(self) -> int:
        return len(self.requests)


def _merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def make_config(**overrides: Any) -> AppConfig:
    """App config with test credentials and no pacing unless overridden."""
    data: dict[str, Any] = {
        "knack": {"app_id": "app123", "api_key": "key456", "user_token": "tok789"},
        "throttle": {"base_cooldown_ms": 0, "max_cooldown_ms": 0},
        "retry": {"max_attempts": 3, "base_delay_ms": 0},
    }
    return AppConfig.model_validate(_merge(data, overrides))


def make_dispatcher(
    handler: DummyKnack,
    config: AppConfig | None = None,
    context: RequestContext | None = None,
) -> RequestDispatcher:
    config = config or make_config()
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RequestDispatcher.from_config(config, context=context, client=client)
