"""Caching for strapiq.

- :class:`KeyValueCache` -- the cache contract the client depends on.
- :class:`DiskCache` -- the :mod:`diskcache`-backed default store.
- :class:`CacheIndex` -- per-collection key lists used to invalidate every
  cached page of a collection at once.
"""

from strapiq.cache.cache import DiskCache, KeyValueCache
from strapiq.cache.index import CacheIndex

__all__ = ["CacheIndex", "DiskCache", "KeyValueCache"]
