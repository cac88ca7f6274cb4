"""In-memory cache with per-entry TTL and least-recently-used eviction."""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

from flowsense_agent.config import CacheClassConfig, CacheConfig
from flowsense_agent.core.sweeper import PeriodicSweeper
from flowsense_agent.log import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    key: str
    value: T
    expires_at: float


@dataclass
class CacheStats:
    size: int
    hits: int
    misses: int
    evictions: int
    hit_rate: float  # fraction of lookups that hit, 0..1


class BoundedCache(Generic[T]):
    """Key/value cache bounded by ``max_size`` with absolute per-entry expiry.

    Entries are kept in an OrderedDict ordered by access recency: both reads and
    writes move a key to the end, so the first key is always the least recently
    touched one and is evicted first when a new key arrives at capacity.

    Expired entries are dropped lazily on read and proactively by a background
    sweep every ``sweep_interval`` seconds when ``auto_cleanup`` is enabled.
    """

    def __init__(
        self,
        max_size: int = 1000,
        default_ttl: float = 60.0,
        auto_cleanup: bool = True,
        sweep_interval: float = 60.0,
        name: str = "cache",
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.name = name
        self.max_size = max_size
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry[T]] = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._sweeper: PeriodicSweeper | None = None
        if auto_cleanup:
            self._sweeper = PeriodicSweeper(f"{name}_sweep", sweep_interval, self.cleanup_expired)
            self._sweeper.start()

    @classmethod
    def from_config(
        cls, name: str, config: CacheClassConfig, auto_cleanup: bool = True, sweep_interval: float = 60.0
    ) -> BoundedCache[Any]:
        return cls(
            max_size=config.max_size,
            default_ttl=config.default_ttl,
            auto_cleanup=auto_cleanup,
            sweep_interval=sweep_interval,
            name=name,
        )

    def get(self, key: str) -> Optional[T]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if self._clock() > entry.expires_at:
                del self._entries[key]
                self._misses += 1
                return None
            self._entries.move_to_end(key)
            self._hits += 1
            return entry.value

    def set(self, key: str, value: T, ttl: float | None = None) -> None:
        expires_at = self._clock() + (self.default_ttl if ttl is None else ttl)
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_size:
                self._evict_lru()
            self._entries[key] = CacheEntry(key=key, value=value, expires_at=expires_at)
            self._entries.move_to_end(key)

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = self._misses = self._evictions = 0

    def size(self) -> int:
        return len(self._entries)

    __len__ = size

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def values(self) -> list[T]:
        now = self._clock()
        with self._lock:
            return [e.value for e in self._entries.values() if now <= e.expires_at]

    def cleanup_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if now > e.expires_at]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def get_stats(self) -> CacheStats:
        with self._lock:
            total = self._hits + self._misses
            return CacheStats(
                size=len(self._entries),
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                hit_rate=round(self._hits / total, 4) if total else 0.0,
            )

    def reset_stats(self) -> None:
        with self._lock:
            self._hits = self._misses = self._evictions = 0

    def close(self) -> None:
        """Stop the background sweep and drop every entry."""
        if self._sweeper is not None:
            self._sweeper.stop()
            self._sweeper = None
        self.clear()

    def _evict_lru(self) -> None:
        if not self._entries:
            return
        key, _ = self._entries.popitem(last=False)
        self._evictions += 1
        logger.debug("cache_evicted", cache=self.name, key=key)


def create_cache_key(*parts: str | int | float) -> str:
    return ":".join(str(p).lower() for p in parts)


@dataclass
class CacheSet:
    """One cache per data-volatility class, shared by the tools that need them."""

    balance: BoundedCache[Any]
    price: BoundedCache[Any]
    portfolio: BoundedCache[Any]
    llm: BoundedCache[Any]

    @classmethod
    def from_config(cls, config: CacheConfig) -> CacheSet:
        def build(name: str, class_config: CacheClassConfig) -> BoundedCache[Any]:
            return BoundedCache.from_config(
                name, class_config, auto_cleanup=config.auto_cleanup, sweep_interval=config.sweep_interval
            )

        return cls(
            balance=build("balance", config.balance),
            price=build("price", config.price),
            portfolio=build("portfolio", config.portfolio),
            llm=build("llm", config.llm),
        )

    def cleanup_expired(self) -> int:
        return sum(cache.cleanup_expired() for cache in self._all())

    def close(self) -> None:
        for cache in self._all():
            cache.close()

    def _all(self) -> tuple[BoundedCache[Any], ...]:
        return (self.balance, self.price, self.portfolio, self.llm)
