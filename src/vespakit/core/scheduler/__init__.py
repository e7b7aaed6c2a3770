"""Scheduling policies for bursty, cancellable work."""

from .debounce import Debouncer

__all__ = [
    "Debouncer",
]
