"""
In-Memory TTL Cache

Bounded, expiring key/value store for hot, slowly-changing lookups
(timezone offsets, user timezone preferences).

Design:
- One lock guards the entry map; eviction and insert share a critical section
- Insertion order of the dict equals creation order, so the oldest-created
  entry is always the first key (eviction is not LRU)
- A daemon thread sweeps expired entries every ``sweep_interval`` seconds,
  taking the lock once per deletion rather than for the whole sweep
- Statistics are observational only
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

V = TypeVar("V")


@dataclass
class CacheEntry(Generic[V]):
    """A cached value together with its creation and expiry times (timer seconds)."""
    value: V
    created_at: float
    expiry: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expiry


class TTLCache(Generic[V]):
    """
    Thread-safe TTL cache with a maximum entry count.

    TTLs are given in milliseconds. When the cache is full, inserting a new
    key evicts the single oldest-created entry.
    """

    def __init__(
        self,
        max_size: int = 1000,
        default_ttl_ms: int = 300_000,
        timer: Callable[[], float] = time.monotonic,
        sweep_interval: float = 60.0,
        name: str = "cache",
    ):
        """
        Initialize the cache.

        Args:
            max_size: Maximum number of entries held at once
            default_ttl_ms: TTL used when set() is called without one
            timer: Monotonic time source in seconds (injectable for tests)
            sweep_interval: Seconds between background sweeps
            name: Label used in logs and statistics
        """
        if max_size < 1:
            raise ValueError("max_size must be at least 1")

        self.max_size = max_size
        self.default_ttl_ms = default_ttl_ms
        self.sweep_interval = sweep_interval
        self.name = name
        self._timer = timer

        self._entries: dict[Any, CacheEntry[V]] = {}
        self._lock = threading.Lock()

        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0

        self._sweeper: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    def get(self, key: Any, default: Optional[V] = None) -> Optional[V]:
        """
        Get a value from the cache.

        Returns:
            The cached value, or ``default`` if the key is missing or expired
        """
        with self._lock:
            entry = self._entries.get(key)

            if entry is None:
                self._misses += 1
                return default

            if entry.is_expired(self._timer()):
                del self._entries[key]
                self._misses += 1
                self._deletes += 1
                return default

            self._hits += 1
            return entry.value

    def set(self, key: Any, value: V, ttl_ms: Optional[int] = None) -> None:
        """
        Store a value.

        Args:
            key: Cache key
            value: Value to cache
            ttl_ms: Time to live in milliseconds (defaults to default_ttl_ms)
        """
        if ttl_ms is None:
            ttl_ms = self.default_ttl_ms

        with self._lock:
            now = self._timer()

            if key in self._entries:
                # Re-inserting moves the key to the end: it is now the newest entry
                del self._entries[key]
            elif len(self._entries) >= self.max_size:
                self._evict_oldest()

            self._entries[key] = CacheEntry(
                value=value,
                created_at=now,
                expiry=now + ttl_ms / 1000.0,
            )
            self._sets += 1

    def has(self, key: Any) -> bool:
        """Check whether a key exists and has not expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False

            if entry.is_expired(self._timer()):
                del self._entries[key]
                self._deletes += 1
                return False

            return True

    def delete(self, key: Any) -> bool:
        """
        Delete a key.

        Returns:
            True if the key existed and was removed
        """
        with self._lock:
            if self._entries.pop(key, None) is None:
                return False
            self._deletes += 1
            return True

    def clear(self) -> None:
        with self._lock:
            self._deletes += len(self._entries)
            self._entries.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def __len__(self) -> int:
        return self.size()

    def get_stats(self) -> dict:
        """Return a snapshot of the cache statistics (hit_rate in percent)."""
        with self._lock:
            total = self._hits + self._misses
            return {
                "hits": self._hits,
                "misses": self._misses,
                "sets": self._sets,
                "deletes": self._deletes,
                "size": len(self._entries),
                "hit_rate": (self._hits / total) * 100 if total > 0 else 0.0,
            }

    def _evict_oldest(self) -> None:
        # Caller holds the lock
        oldest_key = next(iter(self._entries))
        del self._entries[oldest_key]
        self._deletes += 1

    def sweep(self) -> int:
        """
        Remove expired entries.

        Returns:
            Number of entries removed
        """
        now = self._timer()

        with self._lock:
            candidates = [key for key, entry in self._entries.items() if entry.is_expired(now)]

        removed = 0
        for key in candidates:
            with self._lock:
                entry = self._entries.get(key)
                # The key may have been refreshed since the snapshot
                if entry is not None and entry.is_expired(now):
                    del self._entries[key]
                    self._deletes += 1
                    removed += 1

        if removed > 0:
            logger.info(f"Cache cleanup ({self.name}): removed {removed} expired entries")

        return removed

    def start_sweeper(self) -> None:
        """Start the background sweep thread (no-op if already running)."""
        if self._sweeper is not None and self._sweeper.is_alive():
            return

        self._stop_event.clear()
        self._sweeper = threading.Thread(
            target=self._run_sweeper,
            name=f"{self.name}-sweeper",
            daemon=True,
        )
        self._sweeper.start()
        logger.info(f"Cache sweeper started for {self.name} (every {self.sweep_interval}s)")

    def stop_sweeper(self, timeout: Optional[float] = 5.0) -> None:
        """Stop the background sweep thread and wait for it to exit."""
        self._stop_event.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout)
            self._sweeper = None

    @property
    def sweeper_running(self) -> bool:
        return self._sweeper is not None and self._sweeper.is_alive()

    def _run_sweeper(self) -> None:
        while not self._stop_event.wait(self.sweep_interval):
            try:
                self.sweep()
            except Exception as e:
                logger.error(f"Cache sweep failed for {self.name}: {str(e)}", exc_info=True)
