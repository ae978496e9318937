"""In-memory time-bounded cache shared by the area and by-name lookups.

Entries are never evicted on expiry: a stale entry stays readable through
``get`` so callers can fall back to it when a fresh fetch is not possible.
Freshness is decided by the caller via ``is_fresh``.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Generic, Hashable, TypeVar

K = TypeVar("K")
V = TypeVar("V")


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    key: str
    data: V
    timestamp: float


class TimedCache(Generic[K, V]):
    def __init__(
        self,
        ttl_seconds: float,
        key_fn: Callable[[K], str],
        *,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int | None = None,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.key_fn = key_fn
        self.clock = clock
        self.max_entries = max_entries
        self.entries: dict[str, CacheEntry[V]] = {}
        self.lock = threading.Lock()

    def key_for(self, lookup: K) -> str:
        return self.key_fn(lookup)

    def get(self, key: str) -> CacheEntry[V] | None:
        with self.lock:
            return self.entries.get(key)

    def is_fresh(self, entry: CacheEntry[V]) -> bool:
        return self.clock() - entry.timestamp < self.ttl_seconds

    def put(self, key: str, data: V) -> CacheEntry[V]:
        entry = CacheEntry(key=key, data=data, timestamp=self.clock())
        with self.lock:
            self.entries.pop(key, None)
            self.entries[key] = entry
            if self.max_entries is not None:
                # Oldest writes go first; dicts keep insertion order.
                while len(self.entries) > self.max_entries:
                    del self.entries[next(iter(self.entries))]
        return entry

    def __len__(self) -> int:
        with self.lock:
            return len(self.entries)

    def __contains__(self, key: Hashable) -> bool:
        with self.lock:
            return key in self.entries
