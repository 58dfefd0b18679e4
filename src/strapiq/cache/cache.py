"""Key-value cache used for responses, items, indexes and the login token.

:class:`KeyValueCache` is the contract the rest of strapiq depends on:
get / put with a TTL, get-or-compute (:meth:`~KeyValueCache.remember`),
forget, and get-then-forget (:meth:`~KeyValueCache.pull`).  Any shared
store with these semantics can be plugged in.

:class:`DiskCache` is the default implementation, persisting entries on
the filesystem with :mod:`diskcache` so that separate processes (a web
app and a CLI, say) share cached responses and the login token.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, Optional, Protocol, TypeVar, runtime_checkable

import diskcache

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING = object()


@runtime_checkable
class KeyValueCache(Protocol):
    """Minimal cache contract: no cross-key transactions are assumed."""

    def get(self, key: str, default: Any = None) -> Any: ...

    def put(self, key: str, value: Any, ttl: Optional[int] = None) -> None: ...

    def remember(self, key: str, ttl: Optional[int], producer: Callable[[], T]) -> T: ...

    def forget(self, key: str) -> None: ...

    def pull(self, key: str, default: Any = None) -> Any: ...

    def clear(self) -> None: ...


class DiskCache:
    """Filesystem-backed :class:`KeyValueCache` built on :class:`diskcache.Cache`.

    Args:
        cache_dir: Root directory.  Entries live in a ``responses/``
            subdirectory.
        enabled: When ``False`` nothing is stored and every lookup misses;
            :meth:`remember` always calls its producer.

    Example::

        cache = DiskCache("/tmp/strapiq")
        cache.put("articles", ["https://cms/api/articles"], ttl=300)
        cache.get("articles")
    """

    def __init__(self, cache_dir: str | Path, enabled: bool = True) -> None:
        self._cache_dir = Path(cache_dir)
        self._cache: Optional[diskcache.Cache] = None
        if enabled:
            self._cache = diskcache.Cache(str(self._cache_dir / "responses"))

    def get(self, key: str, default: Any = None) -> Any:
        if self._cache is None:
            return default
        return self._cache.get(key, default=default)

    def put(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Store *value*; a ``ttl`` of ``None`` keeps it until evicted."""
        if self._cache is None:
            return
        self._cache.set(key, value, expire=ttl)

    def remember(self, key: str, ttl: Optional[int], producer: Callable[[], T]) -> T:
        """Return the cached value for *key*, or compute, store and return it.

        Exceptions raised by *producer* propagate and nothing is stored.
        """
        cached = self.get(key, _MISSING)
        if cached is not _MISSING:
            logger.debug("Cache hit: %s", key)
            return cached
        logger.debug("Cache miss: %s", key)
        value = producer()
        self.put(key, value, ttl)
        return value

    def forget(self, key: str) -> None:
        if self._cache is None:
            return
        self._cache.delete(key)

    def pull(self, key: str, default: Any = None) -> Any:
        if self._cache is None:
            return default
        return self._cache.pop(key, default=default)

    def clear(self) -> None:
        """Remove every entry."""
        if self._cache is not None:
            self._cache.clear()

    def close(self) -> None:
        if self._cache is not None:
            self._cache.close()
