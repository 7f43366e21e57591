"""In-memory LRU cache with TTL expiry, used for query embeddings."""

from __future__ import annotations

import hashlib
import threading
import time
from collections import OrderedDict
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Callable, Generic, Iterator, Optional, Tuple, TypeVar

V = TypeVar("V")

DEFAULT_MAX_ENTRIES = 100
DEFAULT_TTL_S = 3600.0


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0

    @property
    def hit_rate(self) -> float:
        """Hit percentage over all lookups; 0 when nothing was looked up."""

        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total * 100.0


class _ReadWriteLock:
    """Many concurrent readers or one writer. Not reentrant."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class LruCache(Generic[V]):
    """Bounded mapping that evicts the least recently used entry.

    Entries older than ``ttl_s`` are treated as absent and dropped on access.
    """

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        ttl_s: float = DEFAULT_TTL_S,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self.ttl_s = ttl_s
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[float, V]]" = OrderedDict()
        self._stats = CacheStats()
        self._lock = _ReadWriteLock()

    @staticmethod
    def generate_key(content: str, model: str) -> str:
        digest = hashlib.sha256()
        digest.update(content.encode("utf-8"))
        digest.update(model.encode("utf-8"))
        return digest.hexdigest()

    def _expired(self, created_at: float, now: float) -> bool:
        return now - created_at > self.ttl_s

    def get(self, key: str) -> Optional[V]:
        now = self._clock()
        with self._lock.write():
            entry = self._entries.get(key)
            if entry is None:
                self._stats.misses += 1
                return None
            created_at, value = entry
            if self._expired(created_at, now):
                del self._entries[key]
                self._stats.expirations += 1
                self._stats.misses += 1
                return None
            self._entries.move_to_end(key)
            self._stats.hits += 1
            return value

    def insert(self, key: str, value: V) -> None:
        now = self._clock()
        with self._lock.write():
            if key in self._entries:
                self._entries.move_to_end(key)
            elif len(self._entries) >= self.max_entries:
                self._entries.popitem(last=False)
                self._stats.evictions += 1
            self._entries[key] = (now, value)

    def remove(self, key: str) -> Optional[V]:
        with self._lock.write():
            entry = self._entries.pop(key, None)
        return entry[1] if entry is not None else None

    def clear(self) -> None:
        with self._lock.write():
            self._entries.clear()

    def cleanup_expired(self) -> int:
        now = self._clock()
        with self._lock.write():
            expired = [
                key
                for key, (created_at, _) in self._entries.items()
                if self._expired(created_at, now)
            ]
            for key in expired:
                del self._entries[key]
            self._stats.expirations += len(expired)
        return len(expired)

    def __contains__(self, key: object) -> bool:
        now = self._clock()
        with self._lock.read():
            entry = self._entries.get(key)  # type: ignore[arg-type]
            return entry is not None and not self._expired(entry[0], now)

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._entries)

    def is_empty(self) -> bool:
        return len(self) == 0

    def stats(self) -> CacheStats:
        with self._lock.read():
            return replace(self._stats)


__all__ = ["CacheStats", "LruCache"]
