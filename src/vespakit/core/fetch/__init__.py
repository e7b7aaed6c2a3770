"""Fetch utilities - throttling, retries, caching, dispatch."""

from .base import (
    ApiError,
    HttpStatusError,
    RateLimitError,
    RequestSpec,
    ResponseFormatError,
    TransportError,
    resource_key_for,
)
from .caching import CacheEntry, ResponseCache
from .dispatcher import (
    OperationState,
    PendingOperation,
    RequestContext,
    RequestDispatcher,
)
from .retries import RetryPolicy
from .throttling import ResourceThrottle, ResourceThrottleState

__all__ = [
    # Requests and errors
    "RequestSpec",
    "resource_key_for",
    "ApiError",
    "HttpStatusError",
    "RateLimitError",
    "TransportError",
    "ResponseFormatError",
    # Mechanism
    "ResourceThrottle",
    "ResourceThrottleState",
    "RetryPolicy",
    "ResponseCache",
    "CacheEntry",
    "RequestContext",
    "RequestDispatcher",
    "PendingOperation",
    "OperationState",
]
