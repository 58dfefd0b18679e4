"""Connection to one Strapi instance.

:class:`StrapiClient` owns what every query against the same server
shares: the validated :class:`~strapiq.models.StrapiConfig`, the query
dialect for its major version, the transport, the cache and its
per-collection index, and the :class:`~strapiq.token.TokenManager`.
Collection queries are created from it with :meth:`StrapiClient.collection`.

Status codes are mapped to typed errors here, in one place
(:func:`raise_for_status`), for reads and writes alike.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, Optional

import httpx

from strapiq.cache import CacheIndex, DiskCache, KeyValueCache
from strapiq.dialect import QueryDialect, get_dialect
from strapiq.exceptions import (
    BadRequestError,
    NotFoundError,
    PermissionDeniedError,
    UnknownAuthMethodError,
    UnknownError,
)
from strapiq.models import AuthMethod, StrapiConfig
from strapiq.token import TokenManager
from strapiq.transport import FileSpec, HttpxTransport, Transport

if TYPE_CHECKING:
    from strapiq.collection import CollectionQuery
    from strapiq.uploads import Uploads

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response) -> str:
    """Pull ``error.name - error.message`` out of a Strapi error body, if present."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        error = body["error"]
        name = error.get("name", "")
        message = error.get("message", "")
        return f"{name} - {message}" if name else str(message)
    return response.text[:200]


def raise_for_status(response: httpx.Response, url: str) -> None:
    """Raise the typed error matching a non-2xx *response*.

    Raises:
        BadRequestError: On 400.
        PermissionDeniedError: On 401 / 403.
        NotFoundError: On 404.
        UnknownError: On any other non-success status.
    """
    status = response.status_code
    if response.is_success:
        return

    context = {"url": url, "status": status, "response_body": response.text}
    message = f"[{status}] {url} {_error_message(response)}".rstrip()
    logger.warning("Strapi request failed: %s", message)

    if status == 400:
        raise BadRequestError(message, status_code=status, context=context)
    if status in (401, 403):
        raise PermissionDeniedError(message, status_code=status, context=context)
    if status == 404:
        raise NotFoundError(message, status_code=status, context=context)
    raise UnknownError(message, status_code=status, context=context)


class StrapiClient:
    """Shared connection state for queries against one Strapi instance.

    Construction fails fast, before any request, when the configuration
    names an unknown auth method or an unsupported version.

    Args:
        config: Connection settings.
        transport: HTTP transport; an :class:`~strapiq.transport.HttpxTransport`
            is created (and owned) when omitted.
        cache: Key-value store for responses, indexes and the token; a
            :class:`~strapiq.cache.DiskCache` under ``config.cache_dir``
            (or the XDG cache directory) is created when omitted.

    Raises:
        UnknownAuthMethodError: If ``config.auth`` is not ``public``,
            ``password`` or ``token``.
        ConfigError: If ``config.version`` has no query dialect.

    Example::

        with StrapiClient(config) as client:
            articles = client.collection("articles").order("publishedAt").limit(10).query()
    """

    def __init__(
        self,
        config: StrapiConfig,
        transport: Optional[Transport] = None,
        cache: Optional[KeyValueCache] = None,
    ) -> None:
        allowed = [m.value for m in AuthMethod]
        if config.auth not in allowed:
            raise UnknownAuthMethodError(
                f"Invalid authentication method '{config.auth}', "
                f"expected one of: {', '.join(allowed)}"
            )
        self._config = config
        self._dialect = get_dialect(config.version)

        self._owns_transport = transport is None
        self._transport: Transport = transport or HttpxTransport(config)

        self._owns_cache = cache is None
        if cache is None:
            from strapiq.config import get_cache_dir

            cache = DiskCache(config.cache_dir or get_cache_dir(), enabled=config.cache_enabled)
        self._cache = cache
        self._index = CacheIndex(cache, config.cache_ttl, config.cache_index_max_size)
        self._tokens = TokenManager(config, self._transport, cache)

    # ------------------------------------------------------------------ #
    # Accessors
    # ------------------------------------------------------------------ #

    @property
    def config(self) -> StrapiConfig:
        return self._config

    @property
    def dialect(self) -> QueryDialect:
        return self._dialect

    @property
    def api_version(self) -> int:
        return self._config.version

    @property
    def cache(self) -> KeyValueCache:
        return self._cache

    @property
    def index(self) -> CacheIndex:
        return self._index

    @property
    def tokens(self) -> TokenManager:
        return self._tokens

    # ------------------------------------------------------------------ #
    # Factories
    # ------------------------------------------------------------------ #

    def collection(self, collection_type: str) -> CollectionQuery:
        """Start a query against *collection_type* (e.g. ``"articles"``)."""
        from strapiq.collection import CollectionQuery

        return CollectionQuery(self, collection_type)

    def uploads(self) -> Uploads:
        from strapiq.uploads import Uploads

        return Uploads(self)

    # ------------------------------------------------------------------ #
    # Requests
    # ------------------------------------------------------------------ #

    def url_for(self, path: str) -> str:
        """Absolute URL for a path relative to the API base."""
        return f"{self._config.url}/{path.lstrip('/')}"

    def bearer(self) -> Optional[str]:
        """The bearer token for the next request, or ``None`` for public access."""
        return self._tokens.get_token()

    def get_json(self, url: str, use_cache: bool = True) -> Any:
        """GET *url* and return its parsed JSON body, through the cache when asked.

        The cache key is the URL itself, which is why query URLs are
        rendered canonically.
        """
        if use_cache:
            return self._cache.remember(url, self._config.cache_ttl, lambda: self._fetch_json(url))
        return self._fetch_json(url)

    def _fetch_json(self, url: str) -> Any:
        response = self._transport.get(url, self.bearer())
        raise_for_status(response, url)
        if not response.content:
            raise UnknownError(
                f"Strapi returned no data for {url}",
                status_code=response.status_code,
                context={"url": url},
            )
        try:
            return response.json()
        except ValueError as exc:
            raise UnknownError(
                f"Strapi returned a body that is not JSON: {url}",
                status_code=response.status_code,
                context={"url": url, "response_body": response.text[:200]},
            ) from exc

    def post(self, path: str, payload: Any) -> httpx.Response:
        """POST *payload* to *path*, wrapped in ``{"data": ...}`` on v4 and later."""
        url = self.url_for(path)
        response = self._transport.post(url, self._dialect.wrap_payload(payload), self.bearer())
        raise_for_status(response, url)
        return response

    def put(self, path: str, payload: Any) -> httpx.Response:
        url = self.url_for(path)
        response = self._transport.put(url, self._dialect.wrap_payload(payload), self.bearer())
        raise_for_status(response, url)
        return response

    def delete(self, path: str) -> httpx.Response:
        url = self.url_for(path)
        response = self._transport.delete(url, self.bearer())
        raise_for_status(response, url)
        return response

    def post_multipart(
        self,
        path: str,
        fields: Mapping[str, Any],
        files: Sequence[FileSpec],
    ) -> httpx.Response:
        url = self.url_for(path)
        response = self._transport.post_multipart(url, fields, files, self.bearer())
        raise_for_status(response, url)
        return response

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def close(self) -> None:
        """Close the transport and cache if this client created them."""
        if self._owns_transport and hasattr(self._transport, "close"):
            self._transport.close()
        if self._owns_cache and hasattr(self._cache, "close"):
            self._cache.close()

    def __enter__(self) -> StrapiClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
