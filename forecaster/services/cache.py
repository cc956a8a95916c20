"""
CacheManager - Async-compatible cache with TTL and stale reads.

Features:
- Memory-based cache with oldest-first eviction
- TTL (Time To Live) per entry, age recomputed on every read
- Stale reads for degraded answers while an upstream is down
- asyncio.Lock around every mutation
"""

import asyncio
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Generic, TypeVar

from loguru import logger

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """A single cache entry with metadata."""

    data: T
    timestamp: datetime
    ttl: timedelta

    def age(self, now: datetime) -> timedelta:
        return now - self.timestamp

    def is_expired(self, now: datetime) -> bool:
        """Check if entry is past its TTL."""
        return self.age(now) > self.ttl


@dataclass
class CacheResult(Generic[T]):
    """Result from cache lookup."""

    data: T
    cached_at: datetime
    is_stale: bool


class CacheManager:
    """
    In-memory cache keyed by prefix + name.

    Entries stay readable through get_allow_stale() for max_stale past their
    TTL, then drop on the next touch. At max_size the entry with the oldest
    timestamp is evicted.

    Usage:
        cache = CacheManager(prefix="weather_forecast_")
        key = cache.key("10001")
        hit = await cache.get(key) or await cache.get_allow_stale(key)
    """

    def __init__(
        self,
        prefix: str = "",
        max_size: int = 500,
        default_ttl: timedelta = timedelta(minutes=30),
        max_stale: timedelta | None = timedelta(hours=24),
        debug: bool = False,
        now: Callable[[], datetime] = datetime.now,
    ):
        self._memory: dict[str, CacheEntry[Any]] = {}
        self._prefix = prefix
        self._max_size = max_size
        self._default_ttl = default_ttl
        self._max_stale = max_stale
        self._debug = debug
        self._now = now
        self._lock = asyncio.Lock()
        self._stats = CacheStats()

    def key(self, name: str) -> str:
        """Build a cache key from a logical name."""
        return f"{self._prefix}{name}"

    async def get(self, key: str) -> CacheResult[Any] | None:
        """Return a fresh entry, or None if missing or expired."""
        return await self._read(key, allow_stale=False)

    async def get_allow_stale(self, key: str) -> CacheResult[Any] | None:
        """Return an entry regardless of TTL, flagged stale if expired."""
        return await self._read(key, allow_stale=True)

    async def _read(self, key: str, allow_stale: bool) -> CacheResult[Any] | None:
        async with self._lock:
            entry = self._lookup(key)
            stale = entry is not None and entry.is_expired(self._now())

            if entry is None or (stale and not allow_stale):
                self._stats.misses += 1
                self._log(f"{'EXPIRED' if entry else 'MISS'}: {key}")
                return None

            if stale:
                self._stats.stale_hits += 1
            else:
                self._stats.hits += 1
            self._log(f"{'STALE HIT' if stale else 'HIT'}: {key}")
            return CacheResult(data=entry.data, cached_at=entry.timestamp, is_stale=stale)

    async def set(
        self,
        key: str,
        data: Any,
        ttl: timedelta | None = None,
        timestamp: datetime | None = None,
    ) -> None:
        """Store data under key; timestamp defaults to now, ttl to default_ttl."""
        entry = CacheEntry(
            data=data, timestamp=timestamp or self._now(), ttl=ttl or self._default_ttl
        )

        async with self._lock:
            if key not in self._memory and len(self._memory) >= self._max_size:
                self._evict_oldest()
            self._memory[key] = entry
            self._log(f"SET: {key} (fresh for {entry.ttl})")

    async def cleanup_expired(self) -> int:
        """Drop entries past the stale retention window; returns how many."""
        async with self._lock:
            now = self._now()
            dropped = [k for k, v in self._memory.items() if not self._retainable(v, now)]
            for key in dropped:
                self._memory.pop(key)
            if dropped:
                self._log(f"CLEANUP: dropped {len(dropped)}")
            return len(dropped)

    def _lookup(self, key: str) -> CacheEntry[Any] | None:
        entry = self._memory.get(key)
        if entry is None:
            return None
        if not self._retainable(entry, self._now()):
            del self._memory[key]
            return None
        return entry

    def _retainable(self, entry: CacheEntry[Any], now: datetime) -> bool:
        if self._max_stale is None:
            return True
        return entry.age(now) <= entry.ttl + self._max_stale

    def _evict_oldest(self) -> None:
        if not self._memory:
            return
        victim = min(self._memory, key=lambda k: self._memory[k].timestamp)
        self._memory.pop(victim)
        self._stats.evictions += 1
        self._log(f"EVICT: {victim}")

    def get_stats(self) -> "CacheStats":
        self._stats.size = len(self._memory)
        self._stats.max_size = self._max_size
        return self._stats

    def _log(self, message: str) -> None:
        if self._debug:
            logger.debug(f"[{self._prefix or 'cache'}] {message}")


@dataclass
class CacheStats:
    """Counters reported in the service health snapshot."""

    hits: int = 0
    stale_hits: int = 0
    misses: int = 0
    evictions: int = 0
    size: int = 0
    max_size: int = 0

    @property
    def hit_rate(self) -> float:
        """Share of lookups answered from cache, stale answers included."""
        lookups = self.hits + self.stale_hits + self.misses
        return (self.hits + self.stale_hits) / lookups if lookups else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {**asdict(self), "hit_rate": f"{self.hit_rate:.2%}"}
