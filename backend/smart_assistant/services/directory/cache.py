"""
Stale-while-error cache for directory data.

get_or_fetch returns a fresh entry when one exists, otherwise fetches and
stores. If the fetch fails, or offline mode is on, the last stored value is
served even when expired. Only when nothing was ever stored does the error
reach the caller.

Reads and writes of one key are serialized with a per-key asyncio.Lock;
different keys never block each other. The fetch itself runs outside the
lock, so two concurrent misses on the same key may both fetch.
"""
import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar

from smart_assistant.core.errors import OfflineModeError
from smart_assistant.core.logging import get_logger
from smart_assistant.core.metrics import record_cache_hit, record_cache_miss, record_cache_stale

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    value: T
    fetched_at: float

    def is_fresh(self, ttl_seconds: float, now: float) -> bool:
        return now - self.fetched_at < ttl_seconds


@dataclass
class CachedResult(Generic[T]):
    data: T
    from_cache: bool
    stale: bool = False


class ResilientCache:
    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._entries: Dict[str, CacheEntry[Any]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def peek(self, key: str) -> Optional[CacheEntry[Any]]:
        async with self._lock_for(key):
            return self._entries.get(key)

    async def store(self, key: str, value: Any) -> None:
        async with self._lock_for(key):
            self._entries[key] = CacheEntry(value=value, fetched_at=self._clock())

    async def invalidate(self, key: Optional[str] = None) -> None:
        """Drop one key, or every key when key is None."""
        if key is None:
            for cached_key in list(self._entries):
                async with self._lock_for(cached_key):
                    self._entries.pop(cached_key, None)
            return
        async with self._lock_for(key):
            self._entries.pop(key, None)

    async def get_or_fetch(
        self,
        key: str,
        fetch: Callable[[], Awaitable[T]],
        ttl_seconds: float,
        offline: bool = False,
        force_refresh: bool = False,
    ) -> CachedResult[T]:
        """
        Serve key from cache or fetch it.

        Raises:
            OfflineModeError: offline and nothing cached
            Exception: whatever fetch raised, when nothing is cached
        """
        entry = await self.peek(key)
        now = self._clock()

        if not force_refresh and entry is not None and entry.is_fresh(ttl_seconds, now):
            record_cache_hit(key)
            return CachedResult(data=entry.value, from_cache=True)

        if offline:
            if entry is None:
                logger.warning("cache_offline_miss", key=key)
                raise OfflineModeError()
            record_cache_stale(key)
            logger.info("cache_offline_serving_stale", key=key, age_seconds=int(now - entry.fetched_at))
            return CachedResult(data=entry.value, from_cache=True, stale=True)

        record_cache_miss(key)
        try:
            value = await fetch()
        except Exception as e:
            if entry is None:
                logger.warning(
                    "cache_fetch_failed_no_fallback",
                    key=key,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise
            record_cache_stale(key)
            logger.warning(
                "cache_fetch_failed_serving_stale",
                key=key,
                age_seconds=int(now - entry.fetched_at),
                error=str(e),
                error_type=type(e).__name__,
            )
            return CachedResult(data=entry.value, from_cache=True, stale=True)

        await self.store(key, value)
        return CachedResult(data=value, from_cache=False)
