"""
Swiftly: Cache Plugin
======================

What:  Process-local key/value cache with per-entry TTL, exposed to handlers
       as `ctx.cache`.
How:   A dict of key → (value, expires_at). Expired entries are evicted
       lazily on read and in bulk by `purge_expired()`.

Interface (async, so a networked backend can replace it without touching
handlers):
    await cache.get(key, default=None)
    await cache.set(key, value, ttl=None)   # ttl in seconds, None = default
    await cache.delete(key)                 # → bool
    await cache.exists(key)                 # → bool
    await cache.clear()
"""

import copy
import logging
import time
from typing import Any, Callable, Dict, Optional, Tuple

from swiftly.plugins.base import Plugin

logger = logging.getLogger(__name__)


class MemoryCache:
    def __init__(self, default_ttl: int = 0, clock: Callable[[], float] = time.monotonic):
        self.default_ttl = default_ttl
        self._clock = clock
        self._items: Dict[str, Tuple[Any, Optional[float]]] = {}

    def _expires_at(self, ttl: Optional[int]) -> Optional[float]:
        ttl = self.default_ttl if ttl is None else ttl
        return self._clock() + ttl if ttl and ttl > 0 else None

    def _live(self, key: str) -> Optional[Tuple[Any, Optional[float]]]:
        item = self._items.get(key)
        if item is None:
            return None
        if item[1] is not None and self._clock() >= item[1]:
            del self._items[key]
            return None
        return item

    async def get(self, key: str, default: Any = None) -> Any:
        item = self._live(key)
        # Copies keep cached values isolated from caller mutation
        return copy.deepcopy(item[0]) if item is not None else default

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        self._items[key] = (copy.deepcopy(value), self._expires_at(ttl))
        return True

    async def delete(self, key: str) -> bool:
        return self._items.pop(key, None) is not None

    async def exists(self, key: str) -> bool:
        return self._live(key) is not None

    async def clear(self) -> None:
        self._items.clear()

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [key for key, (_, expires) in self._items.items() if expires is not None and now >= expires]
        for key in expired:
            del self._items[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._items)


class CachePlugin(Plugin):
    name = "cache"
    order = 1

    def on_init(self, app_ctx) -> MemoryCache:
        ttl = app_ctx.config.cache_default_ttl
        logger.info("In-memory cache ready (default TTL: %s)", f"{ttl}s" if ttl else "none")
        return MemoryCache(default_ttl=ttl)

    async def on_shutdown(self, cache: MemoryCache) -> None:
        await cache.clear()
