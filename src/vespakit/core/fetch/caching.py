"""
Short-lived response cache.

Entries live for a fixed TTL and are replaced on refresh. One entity
is stored under a single canonical key; secondary keys (e.g. a lookup
by name for something also known by id) are aliases that resolve to
the canonical key before every read and write.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from vespakit.core.config.models import CacheConfig
from vespakit.core.logging import get_logger

logger = get_logger("fetch.caching")


@dataclass
class CacheEntry:
    """A previously fetched payload."""

    key: str
    payload: Any
    fetched_at: float

    def age(self, now: float) -> float:
        return now - self.fetched_at


class ResponseCache:
    """TTL cache keyed by canonical entity key, with alias lookup."""

    def __init__(
        self,
        config: CacheConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or CacheConfig()
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._aliases: dict[str, str] = {}

    @property
    def ttl(self) -> float:
        return self.config.ttl_seconds

    def resolve(self, key: str) -> str:
        """Follow aliases to the canonical key."""
        seen = {key}
        while key in self._aliases:
            key = self._aliases[key]
            if key in seen:
                break
            seen.add(key)
        return key

    def alias(self, alias_key: str, canonical_key: str) -> None:
        """Make ``alias_key`` resolve to ``canonical_key``.

        If the alias held its own entry, the fresher of the two entries
        is kept under the canonical key.
        """
        target = self.resolve(canonical_key)
        if alias_key == target:
            return

        own = self._entries.pop(alias_key, None)
        if own is not None:
            current = self._entries.get(target)
            if current is None or own.fetched_at > current.fetched_at:
                self._entries[target] = CacheEntry(target, own.payload, own.fetched_at)

        # Anything that pointed at the alias now points at the target
        for key, value in list(self._aliases.items()):
            if value == alias_key:
                self._aliases[key] = target
        self._aliases[alias_key] = target

    def lookup(self, key: str) -> CacheEntry | None:
        """Return the fresh entry for ``key`` or None on a miss.

        Expired entries are never returned.
        """
        if not self.config.enabled:
            return None
        canonical = self.resolve(key)
        entry = self._entries.get(canonical)
        if entry is None:
            logger.debug("Cache miss for %s", key)
            return None
        if entry.age(self._clock()) >= self.ttl:
            logger.debug("Cache expired for %s", key)
            return None
        logger.debug("Cache hit for %s", key)
        return entry

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached payload for ``key``, or ``default`` on a miss."""
        entry = self.lookup(key)
        return default if entry is None else entry.payload

    def set(self, key: str, payload: Any, aliases: Iterable[str] = ()) -> CacheEntry:
        """Store ``payload`` under ``key``, replacing any previous entry.

        Args:
            key: Key to write through (resolved to its canonical key)
            payload: Value to cache
            aliases: Extra keys that should resolve to the same entry
        """
        canonical = self.resolve(key)
        entry = CacheEntry(canonical, payload, self._clock())
        if self.config.enabled:
            self._entries[canonical] = entry
        for alias_key in aliases:
            self.alias(alias_key, canonical)
        return entry

    def clear(self) -> None:
        """Drop every entry and alias."""
        self._entries.clear()
        self._aliases.clear()

    def keys(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.lookup(key) is not None

    def __len__(self) -> int:
        return len(self._entries)
