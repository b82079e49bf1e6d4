"""Process-wide TTL cache for client-side lookups such as favorite models."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


class ProcessCache:
    """Keyed values with a per-entry time to live.

    Entries are invalidated explicitly through ``invalidate`` after a write,
    or expire on their own after ``ttl`` seconds.
    """

    def __init__(self, default_ttl: float = 300.0, clock: Callable[[], float] = time.monotonic):
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def get(self, key: str, default: Any = None) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return default
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            self._drop_lock(key)
            return default
        return value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        self._entries[key] = (self._clock() + (self.default_ttl if ttl is None else ttl), value)

    def __contains__(self, key: str) -> bool:
        sentinel = object()
        return self.get(key, sentinel) is not sentinel

    async def get_or_load(
        self, key: str, loader: Callable[[], Awaitable[Any]], ttl: float | None = None
    ) -> Any:
        """Cached value for ``key``, loading it once when missing or expired.

        Concurrent callers for the same key share a single load.
        """
        if key in self:
            return self.get(key)
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            if key in self:
                return self.get(key)
            value = await loader()
            self.set(key, value, ttl)
            return value

    def _drop_lock(self, key: str) -> None:
        # A lock held by an in-flight load stays until the next drop
        lock = self._locks.get(key)
        if lock is not None and not lock.locked():
            del self._locks[key]

    def invalidate(self, key: str) -> None:
        self._drop_lock(key)
        if self._entries.pop(key, None) is not None:
            logger.debug(f"Invalidated cache entry {key}")

    def clear(self) -> None:
        self._entries.clear()
        self._locks.clear()


process_cache = ProcessCache()
