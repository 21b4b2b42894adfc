# backend/softzen/cache.py
from __future__ import annotations
import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import structlog

logger = structlog.get_logger(__name__)


@dataclass
class CacheEntry:
    data: Any
    stored_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        return now - self.stored_at >= self.ttl


class ResponseCache:
    """
    Process-wide cache of JSON responses keyed by request signature.

    Keys start with the request path so that a write to a resource class can
    drop every cached read of it with :meth:`invalidate_by_prefix`. Entries
    expire after their TTL; :meth:`purge_expired` removes them in bulk and is
    driven by :meth:`run_purger`. None of the operations await, so readers are
    never blocked by maintenance.
    """

    def __init__(self, default_ttl: float = 300.0, clock: Callable[[], float] = time.monotonic):
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    @staticmethod
    def make_key(method: str, path: str, user_id: Optional[int]) -> str:
        return f"{path}|{method.upper()}|{user_id if user_id is not None else 'anonymous'}"

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expired(self._clock()):
            self._entries.pop(key, None)
            return None
        return entry.data

    def set(self, key: str, data: Any, ttl: Optional[float] = None) -> None:
        self._entries[key] = CacheEntry(data, self._clock(), self.default_ttl if ttl is None else ttl)

    def invalidate_by_prefix(self, *prefixes: str) -> int:
        doomed = [key for key in self._entries if key.startswith(prefixes)]
        for key in doomed:
            self._entries.pop(key, None)
        if doomed:
            logger.debug("cache_invalidated", prefixes=list(prefixes), removed=len(doomed))
        return len(doomed)

    def purge_expired(self) -> int:
        now = self._clock()
        doomed = [key for key, entry in list(self._entries.items()) if entry.expired(now)]
        for key in doomed:
            self._entries.pop(key, None)
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    async def run_purger(self, interval: float) -> None:
        """Purge expired entries every ``interval`` seconds until cancelled."""
        while True:
            await asyncio.sleep(interval)
            removed = self.purge_expired()
            if removed:
                logger.info("cache_purged", removed=removed, remaining=len(self))
