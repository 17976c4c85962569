"""
Process-wide caches for sqlscan.

Record metadata is computed once per type and never invalidated, so caches
here are unbounded cachetools mappings without expiry. Reads of a populated
entry take no lock; population is double-checked under the manager's lock.
"""
import logging
import threading
from collections.abc import Callable, Hashable
from typing import Any

import cachetools

logger = logging.getLogger(__name__)

METADATA_CACHE = 'record_metadata'


class Cache:
    """Cache manager for the sqlscan module.

    Thread-safe singleton owning every named cache.
    """

    _instance = None
    _caches: dict[str, cachetools.Cache] = {}
    _lock = threading.RLock()

    @classmethod
    def get_instance(cls) -> 'Cache':
        """Get singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def get_cache(self, name: str) -> cachetools.Cache:
        """Named cache, created empty on first use."""
        cache = self._caches.get(name)
        if cache is None:
            with self._lock:
                cache = self._caches.setdefault(name, cachetools.Cache(maxsize=float('inf')))
        return cache

    def get_or_build(self, name: str, key: Hashable, build: Callable[[], Any]) -> Any:
        """Return the cached value for `key`, building it once if absent.

        `build` runs at most once per key. Errors from `build` propagate and
        leave nothing cached.
        """
        cache = self.get_cache(name)
        value = cache.get(key)
        if value is not None:
            return value
        with self._lock:
            value = cache.get(key)
            if value is None:
                value = build()
                cache[key] = value
                logger.debug(f'{name}: cached {key!r}')
        return value

    def clear_all(self) -> None:
        """Clear all managed caches."""
        with self._lock:
            for cache in self._caches.values():
                cache.clear()


def get_metadata_cache() -> cachetools.Cache:
    """Cache of record type -> RecordInfo.
    """
    return Cache.get_instance().get_cache(METADATA_CACHE)
