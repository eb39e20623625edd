import logging
from dataclasses import dataclass
from threading import Event, Lock, Thread
from time import time
from typing import Any, Callable

logger = logging.getLogger("dsa_tracker.cache")


@dataclass
class CacheEntry:
    value: Any
    created_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.created_at >= self.ttl

    def remaining(self, now: float) -> float:
        return max(0.0, self.ttl - (now - self.created_at))


@dataclass
class CacheStats:
    size: int
    keys: list[str]


class QueryCache:
    """Process-wide TTL cache for listing results.

    Entries are reclaimed lazily on read and by :meth:`cleanup_expired`.
    Every write to questions, notes or progress flushes the whole store
    through :meth:`invalidate_all`.
    """

    def __init__(self, default_ttl: float = 300.0, clock: Callable[[], float] = time):
        self.default_ttl = default_ttl
        self._clock = clock
        self._lock = Lock()
        self._store: dict[str, CacheEntry] = {}

    def now(self) -> float:
        return self._clock()

    def get_entry(self, key: str) -> CacheEntry | None:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._store[key]
                logger.debug("Expired cache entry dropped: %s", key)
                return None
            return entry

    def get(self, key: str) -> Any | None:
        entry = self.get_entry(key)
        return entry.value if entry else None

    def set(self, key: str, value: Any, ttl: float | None = None) -> CacheEntry:
        entry = CacheEntry(value=value, created_at=self._clock(), ttl=self.default_ttl if ttl is None else ttl)
        with self._lock:
            self._store[key] = entry
        logger.debug("Cached %s for %.0fs", key, entry.ttl)
        return entry

    def invalidate_all(self) -> int:
        with self._lock:
            count = len(self._store)
            self._store.clear()
        logger.info("Query cache invalidated (%d entries removed)", count)
        return count

    def cleanup_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._store.items() if entry.is_expired(now)]
            for key in expired:
                del self._store[key]
        if expired:
            logger.info("Cleaned up %d expired cache entries", len(expired))
        return len(expired)

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(size=len(self._store), keys=list(self._store.keys()))

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)


class CacheSweeper(Thread):
    """Background thread that purges expired entries on a fixed interval."""

    def __init__(self, cache: QueryCache, interval_seconds: float = 300.0):
        super().__init__(name="query-cache-sweeper", daemon=True)
        self.cache = cache
        self.interval_seconds = interval_seconds
        self._stopped = Event()

    def run(self):
        while not self._stopped.wait(self.interval_seconds):
            self.cache.cleanup_expired()

    def stop(self, timeout: float | None = 5.0):
        self._stopped.set()
        if self.is_alive():
            self.join(timeout)
