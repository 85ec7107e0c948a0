"""
scpb_site/core/content_cache.py — Read-through content cache
Fronts the CMS with a per-process TTL cache. Expired entries are kept so
they can be served when a reload fails (stale-on-error). Entries leave the
cache only through explicit invalidation or a process restart.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from scpb_site.core import logging as site_logging

T = TypeVar("T")

Loader = Callable[[], Awaitable[T]]
Clock = Callable[[], float]


class CacheState(str, Enum):
    ABSENT = "absent"
    FRESH = "fresh"
    STALE = "stale"


@dataclass
class CacheEntry(Generic[T]):
    value: T
    expires_at: float


class ContentCache:
    """
    Keyed read-through cache with a fixed TTL for every entry.

    Not safe to share across processes and does not de-duplicate
    concurrent loads: two simultaneous misses both call their loader and
    the last one to finish wins.
    """

    def __init__(self, ttl_seconds: int = 3600, clock: Clock = time.time) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry[Any]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def peek(self, key: str) -> CacheState:
        entry = self._entries.get(key)
        if entry is None:
            return CacheState.ABSENT
        if entry.expires_at > self._clock():
            return CacheState.FRESH
        return CacheState.STALE

    async def get_or_load(
        self,
        key: str,
        loader: Loader[T],
        *,
        timeout: Optional[float] = None,
    ) -> T:
        """
        Return the cached value for key, loading it if absent or expired.

        If the loader fails (or exceeds timeout) and any previous value is
        held, that value is returned and a warning is logged. With no
        previous value the loader's exception propagates.
        """
        entry = self._entries.get(key)
        if entry is not None and entry.expires_at > self._clock():
            return entry.value

        try:
            if timeout is not None:
                value = await asyncio.wait_for(loader(), timeout)
            else:
                value = await loader()
        except Exception as exc:
            # Re-read: a concurrent load may have stored a value meanwhile.
            entry = self._entries.get(key)
            if entry is None:
                raise
            site_logging.log_cache_event(
                "stale_fallback",
                key,
                error=f"{type(exc).__name__}: {exc}",
            )
            return entry.value

        self._entries[key] = CacheEntry(
            value=value,
            expires_at=self._clock() + self.ttl_seconds,
        )
        return value

    def invalidate(self, key: str) -> bool:
        removed = self._entries.pop(key, None) is not None
        if removed:
            site_logging.log_cache_event("invalidate", key)
        return removed

    def invalidate_prefix(self, prefix: str) -> int:
        doomed = [key for key in self._entries if key.startswith(prefix)]
        for key in doomed:
            del self._entries[key]
        site_logging.log_cache_event("invalidate_prefix", prefix, count=len(doomed))
        return len(doomed)

    def invalidate_all(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        site_logging.log_cache_event("invalidate_all", "*", count=count)
        return count
