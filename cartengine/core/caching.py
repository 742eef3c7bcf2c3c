"""
Small synchronous TTL cache with an injectable clock.

Used for memoizing short-lived computed values (active LTO pricing per
menu item, delivery fees per location). The owner creates and holds the
cache explicitly; there is no module-level instance.
"""
from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

V = TypeVar("V")

Clock = Callable[[], float]


@dataclass
class CacheEntry(Generic[V]):
    """Single cache entry with metadata."""

    value: V
    created_at: float
    ttl: float | None  # seconds
    hits: int = 0

    @property
    def expires_at(self) -> float | None:
        if self.ttl is None:
            return None
        return self.created_at + self.ttl

    def is_expired(self, now: float) -> bool:
        expires_at = self.expires_at
        if expires_at is None:
            return False
        return now >= expires_at


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    sets: int = 0
    expirations: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "expirations": self.expirations,
            "hit_rate": round(self.hit_rate * 100, 2),
        }


class TTLCache(Generic[V]):
    """In-memory LRU cache whose entries expire after `ttl` seconds."""

    def __init__(self, ttl: float, max_size: int = 1024, clock: Clock | None = None):
        self._ttl = ttl
        self._max_size = max_size
        self._clock: Clock = clock or time.monotonic
        self._entries: OrderedDict[str, CacheEntry[V]] = OrderedDict()
        self.stats = CacheStats()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.lookup(key)[0]

    def lookup(self, key: str) -> tuple[bool, V | None]:
        """Return (found, value); a cached ``None`` counts as found."""
        entry = self._entries.get(key)
        if entry is None:
            self.stats.misses += 1
            return False, None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            self.stats.misses += 1
            self.stats.expirations += 1
            return False, None
        self._entries.move_to_end(key)
        entry.hits += 1
        self.stats.hits += 1
        return True, entry.value

    def get(self, key: str, default: V | None = None) -> V | None:
        found, value = self.lookup(key)
        return value if found else default

    def set(self, key: str, value: V, ttl: float | None = None) -> None:
        if key in self._entries:
            del self._entries[key]
        while len(self._entries) >= self._max_size:
            self._entries.popitem(last=False)
        self._entries[key] = CacheEntry(
            value=value,
            created_at=self._clock(),
            ttl=self._ttl if ttl is None else ttl,
        )
        self.stats.sets += 1

    def get_or_compute(self, key: str, compute: Callable[[], V]) -> V:
        found, value = self.lookup(key)
        if found:
            return value  # type: ignore[return-value]
        value = compute()
        self.set(key, value)
        return value

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count
