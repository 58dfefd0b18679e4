"""Per-collection cache index for bulk invalidation.

Strapi responses are cached under their request URL, so there is no way
to find "every cached page of ``articles``" from the cache alone.  The
:class:`CacheIndex` keeps, per collection type, an ordered and
deduplicated list of the keys written on its behalf:

- ``index:<type>`` -- request URLs cached by collection queries;
- ``index:<type>:items`` -- single-item keys written by ``find_one`` and
  ``find_one_by_id``.  Each item key holds the request URL the item was
  served from, so evicting an item evicts that response too.

The index is written after the entry it names and the two writes are not
atomic, so readers must tolerate an index naming a key that has already
expired.  Each list is bounded: when it outgrows ``max_size`` the oldest
keys are dropped from the index and evicted from the cache, so that
nothing cached stays out of reach of :meth:`CacheIndex.clear`.
"""

from __future__ import annotations

import logging
from typing import Optional

from strapiq.cache.cache import KeyValueCache

logger = logging.getLogger(__name__)


class CacheIndex:
    """Bounded, ordered key lists stored in a :class:`KeyValueCache`.

    Args:
        cache: The shared cache holding both entries and index lists.
        ttl: TTL applied whenever an index list is written.
        max_size: Maximum number of keys kept per list.
    """

    def __init__(self, cache: KeyValueCache, ttl: Optional[int], max_size: int = 1000) -> None:
        self._cache = cache
        self._ttl = ttl
        self._max_size = max_size

    @staticmethod
    def collection_key(collection_type: str) -> str:
        return f"index:{collection_type}"

    @staticmethod
    def items_key(collection_type: str) -> str:
        return f"index:{collection_type}:items"

    @staticmethod
    def item_cache_key(collection_type: str, item_id: object) -> str:
        """Cache key for a single item fetched through ``find_one``."""
        return f"{collection_type}:item:{item_id}"

    def keys(self, collection_type: str) -> list[str]:
        return self._read(self.collection_key(collection_type))

    def item_keys(self, collection_type: str) -> list[str]:
        return self._read(self.items_key(collection_type))

    def record(self, collection_type: str, key: str) -> None:
        """Remember that *key* was cached by a query against *collection_type*."""
        self._append(self.collection_key(collection_type), key)

    def record_item(self, collection_type: str, item_id: object, url: str) -> str:
        """Point the item key for *item_id* at the response *url* and index it.

        Returns:
            The item key.
        """
        key = self.item_cache_key(collection_type, item_id)
        self._cache.put(key, url, self._ttl)
        self._append(self.items_key(collection_type), key)
        return key

    def clear(self, collection_type: str, including_items: bool = False) -> int:
        """Evict every key recorded for *collection_type*, then the index itself.

        Returns:
            The number of keys evicted (not counting the index entries).
        """
        evicted = self._evict_all(self.collection_key(collection_type))
        if including_items:
            evicted += self._evict_all(self.items_key(collection_type), follow=True)
        logger.debug("Cleared %d cached keys for %s", evicted, collection_type)
        return evicted

    def clear_item(self, collection_type: str, item_id: object) -> bool:
        """Evict one item, the response it was served from, and its index entry.

        Returns:
            ``True`` if the item was listed in the index.
        """
        key = self.item_cache_key(collection_type, item_id)
        index_key = self.items_key(collection_type)
        listed = self._cache.pull(index_key, []) or []
        self._forget_item(key)
        remaining = [k for k in listed if k != key]
        if remaining:
            self._cache.put(index_key, remaining, self._ttl)
        return key in listed

    def _read(self, index_key: str) -> list[str]:
        value = self._cache.get(index_key, [])
        return list(value) if isinstance(value, (list, tuple)) else []

    def _append(self, index_key: str, key: str) -> None:
        keys = self._read(index_key)
        if key not in keys:
            keys.append(key)
        overflow: list[str] = []
        if len(keys) > self._max_size:
            overflow = keys[: len(keys) - self._max_size]
            keys = keys[len(keys) - self._max_size:]
        for stale in overflow:
            self._cache.forget(stale)
        self._cache.put(index_key, keys, self._ttl)

    def _forget_item(self, key: str) -> None:
        url = self._cache.pull(key)
        if isinstance(url, str):
            self._cache.forget(url)

    def _evict_all(self, index_key: str, follow: bool = False) -> int:
        keys = self._read(index_key)
        for key in keys:
            if follow:
                self._forget_item(key)
            else:
                self._cache.forget(key)
        self._cache.forget(index_key)
        return len(keys)
