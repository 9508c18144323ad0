"""In-process TTL caches with per-entry expiry.

Each entry carries its own ``expires_at`` so one cache can hold values with
different lifetimes (long-lived successes next to short-lived failures).
Entries are only returned while ``now < expires_at``; expired ones are purged
lazily on access and by :meth:`ExpiringCache.sweep`.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from cachetools import TLRUCache  # type: ignore[import-untyped]

T = TypeVar("T")

Clock = Callable[[], float]


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A memoized value and the wall-clock window in which it is valid."""

    value: T
    stored_at: float
    expires_at: float

    def age(self, now: float) -> float:
        return max(0.0, now - self.stored_at)


def _entry_expiry(_key: str, entry: CacheEntry, _now: float) -> float:
    return entry.expires_at


class ExpiringCache(Generic[T]):
    """Thread-safe keyed cache backed by ``cachetools.TLRUCache``.

    When *maxsize* is reached the entry closest to expiry is evicted first.
    """

    def __init__(self, name: str, maxsize: int, clock: Clock = time.time) -> None:
        self.name = name
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: TLRUCache = TLRUCache(maxsize=maxsize, ttu=_entry_expiry, timer=clock)

    def now(self) -> float:
        return self._clock()

    def get(self, key: str) -> CacheEntry[T] | None:
        """Return the live entry for *key*, or ``None`` if absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
        if entry is None or not self.now() < entry.expires_at:
            return None
        return entry

    def set(self, key: str, value: T, ttl: float) -> CacheEntry[T]:
        now = self.now()
        entry = CacheEntry(value=value, stored_at=now, expires_at=now + ttl)
        with self._lock:
            self._entries[key] = entry
        return entry

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def sweep(self) -> None:
        """Drop every expired entry."""
        with self._lock:
            self._entries.expire()

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
