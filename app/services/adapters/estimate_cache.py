"""
Estimate Result Caching

Process-local cache of footprint results keyed by request window:
1. In-memory backend with TTL expiry and a bounded store
2. `ignoreCache` requests skip the read but refresh the entry
3. Entries are JSON so cached and fresh responses serialize identically
"""

import json
import hashlib
from abc import ABC, abstractmethod
from datetime import date, timedelta, datetime, timezone
from typing import List, Dict, Any, Optional
import structlog

logger = structlog.get_logger()


class CacheBackend(ABC):
    """Abstract base class for cache backends."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Get value from cache."""
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Set value in cache with TTL."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete key from cache."""
        pass


class InMemoryCache(CacheBackend):
    """
    Simple in-memory cache.

    Expired entries are swept on every write and the store holds at most
    `max_entries` keys, evicting the oldest first.

    Note: Not shared between processes.
    """

    def __init__(self, max_entries: int = 1024):
        self.max_entries = max_entries
        self._store: Dict[str, tuple[str, datetime]] = {}

    def _expired(self, expires_at: datetime, now: datetime) -> bool:
        return now >= expires_at

    async def get(self, key: str) -> Optional[str]:
        if key not in self._store:
            return None

        value, expires_at = self._store[key]
        if self._expired(expires_at, datetime.now(timezone.utc)):
            del self._store[key]
            return None

        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        now = datetime.now(timezone.utc)
        for stale in [k for k, (_, expires_at) in self._store.items() if self._expired(expires_at, now)]:
            del self._store[stale]

        self._store.pop(key, None)
        while len(self._store) >= self.max_entries:
            del self._store[next(iter(self._store))]
        self._store[key] = (value, now + timedelta(seconds=ttl_seconds))

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)


class EstimateCache:
    """
    High-level caching API for footprint estimates.

    Usage:
        cached = await cache.get_estimates(start, end, "month")
        if cached is None:
            results = await aggregator.get_estimates(start, end)
            await cache.set_estimates(start, end, "month", serialized)
    """

    def __init__(self, backend: CacheBackend, ttl_seconds: int = 3600):
        self.backend = backend
        self.ttl_seconds = ttl_seconds

    def _generate_key(self, prefix: str, *args) -> str:
        key_string = ":".join([prefix] + [str(a) for a in args])
        return f"footprint:{hashlib.sha256(key_string.encode()).hexdigest()}"

    async def get_estimates(
        self,
        start_date: date,
        end_date: date,
        group_by: str
    ) -> Optional[List[Dict[str, Any]]]:
        key = self._generate_key("estimates", start_date, end_date, group_by)
        cached = await self.backend.get(key)

        if cached:
            logger.debug("cache_hit", type="estimates", start=str(start_date), end=str(end_date))
            return json.loads(cached)

        logger.debug("cache_miss", type="estimates", start=str(start_date), end=str(end_date))
        return None

    async def set_estimates(
        self,
        start_date: date,
        end_date: date,
        group_by: str,
        estimates: List[Dict[str, Any]]
    ) -> None:
        key = self._generate_key("estimates", start_date, end_date, group_by)
        await self.backend.set(key, json.dumps(estimates), self.ttl_seconds)
        logger.debug("cache_set", type="estimates", results=len(estimates))

    async def invalidate(self, start_date: date, end_date: date, group_by: str) -> None:
        await self.backend.delete(self._generate_key("estimates", start_date, end_date, group_by))
