"""In-process memoization for read endpoints.

Entries are keyed by endpoint name plus the request's query parameters and
expire after a per-entry time-to-live. Any write clears the whole cache.
"""
import asyncio
import json
import logging
import threading
import time
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)


def cache_key(name: str, params: Optional[Mapping[str, Any]] = None) -> str:
    # Parameters keep the order the caller sent them in, so the same filters
    # given in a different order map to a different entry.
    if params is None:
        return name
    return f"{name}:{json.dumps(dict(params), separators=(',', ':'), default=str)}"


class QueryCache:
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, float, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            payload, stored_at, ttl = entry
            if self._clock() - stored_at < ttl:
                return payload
            del self._entries[key]
            return None

    def set(self, key: str, payload: Any, ttl: float) -> None:
        with self._lock:
            self._entries[key] = (payload, self._clock(), ttl)

    def clear(self) -> None:
        with self._lock:
            dropped = len(self._entries)
            self._entries.clear()
        logger.debug("Cache invalidated (%d entries)", dropped)

    def sweep(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [k for k, (_, stored_at, ttl) in self._entries.items() if now - stored_at >= ttl]
            for k in expired:
                del self._entries[k]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None


class NullCache(QueryCache):
    """Never stores anything."""

    def set(self, key: str, payload: Any, ttl: float) -> None:
        pass


async def run_sweeper(cache: QueryCache, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        removed = cache.sweep()
        if removed:
            logger.debug("Cache sweep removed %d expired entries", removed)
