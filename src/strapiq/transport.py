"""HTTP transport for strapiq.

:class:`Transport` is the contract the core depends on: one method per
HTTP verb, an optional bearer token, and an :class:`httpx.Response` back
for every completed exchange whatever its status.  When no exchange
completes (DNS failure, refused connection, timeout, TLS error) a
:class:`~strapiq.exceptions.ConnectionFailure` is raised instead, so
callers can tell an unreachable server from one that rejected them.
Mapping status codes to errors is left to the caller.

:class:`HttpxTransport` implements it on top of :class:`httpx.Client`
and adds:

- **Bearer injection** -- ``Authorization: Bearer <token>`` when a token
  is given.
- **v4 compatibility header** -- ``Strapi-Response-Format: v4`` for v5
  servers when ``compatibility_mode`` is on.
- **Retry with backoff** -- retries 5xx responses and connection errors
  ``max_retries`` times, waiting 1 s, 2 s, 4 s, ...
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping, Sequence
from typing import Any, Optional, Protocol

import httpx

from strapiq.exceptions import ConnectionFailure
from strapiq.models import StrapiConfig

logger = logging.getLogger(__name__)

FileSpec = tuple[str, tuple[Optional[str], Any]]
"""A multipart file part: ``(field_name, (filename, content))``."""


class Transport(Protocol):
    """What the core needs from an HTTP client."""

    def get(self, url: str, bearer: Optional[str] = None) -> httpx.Response: ...

    def post(self, url: str, body: Any, bearer: Optional[str] = None) -> httpx.Response: ...

    def put(self, url: str, body: Any, bearer: Optional[str] = None) -> httpx.Response: ...

    def delete(self, url: str, bearer: Optional[str] = None) -> httpx.Response: ...

    def post_multipart(
        self,
        url: str,
        fields: Mapping[str, Any],
        files: Sequence[FileSpec],
        bearer: Optional[str] = None,
    ) -> httpx.Response: ...


class HttpxTransport:
    """:class:`Transport` backed by a single :class:`httpx.Client`.

    Args:
        config: Supplies ``timeout``, ``verify_ssl``, ``max_retries``,
            ``version`` and ``compatibility_mode``.
        transport: Optional :class:`httpx.BaseTransport`, e.g. an
            :class:`httpx.MockTransport` in tests.
        backoff: Base delay in seconds between retries.

    Example::

        with HttpxTransport(config) as transport:
            response = transport.get("https://cms.example.com/api/articles")
    """

    def __init__(
        self,
        config: StrapiConfig,
        transport: Optional[httpx.BaseTransport] = None,
        backoff: float = 1.0,
    ) -> None:
        self._config = config
        self._backoff = backoff
        headers = {"Accept": "application/json"}
        if config.version == 5 and config.compatibility_mode:
            headers["Strapi-Response-Format"] = "v4"
        self._client = httpx.Client(
            timeout=config.timeout,
            verify=config.verify_ssl,
            follow_redirects=True,
            headers=headers,
            transport=transport,
        )

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> HttpxTransport:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------ #
    # Verbs
    # ------------------------------------------------------------------ #

    def get(self, url: str, bearer: Optional[str] = None) -> httpx.Response:
        return self._request("GET", url, bearer)

    def post(self, url: str, body: Any, bearer: Optional[str] = None) -> httpx.Response:
        return self._request("POST", url, bearer, json=body)

    def put(self, url: str, body: Any, bearer: Optional[str] = None) -> httpx.Response:
        return self._request("PUT", url, bearer, json=body)

    def delete(self, url: str, bearer: Optional[str] = None) -> httpx.Response:
        return self._request("DELETE", url, bearer)

    def post_multipart(
        self,
        url: str,
        fields: Mapping[str, Any],
        files: Sequence[FileSpec],
        bearer: Optional[str] = None,
    ) -> httpx.Response:
        """POST a ``multipart/form-data`` body made of *fields* and *files*."""
        return self._request("POST", url, bearer, data=dict(fields), files=list(files))

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _request(
        self,
        method: str,
        url: str,
        bearer: Optional[str],
        **kwargs: Any,
    ) -> httpx.Response:
        """Send one request, retrying 5xx answers and connection errors."""
        headers = {"Authorization": f"Bearer {bearer}"} if bearer else {}
        max_retries = self._config.max_retries

        for attempt in range(max_retries + 1):
            logger.debug("%s %s (attempt %d)", method, url, attempt + 1)
            try:
                response = self._client.request(method, url, headers=headers, **kwargs)
            except httpx.TransportError as exc:
                if attempt < max_retries:
                    delay = self._backoff * 2 ** attempt
                    logger.debug(
                        "Connection error: %s, retrying in %ss (attempt %d/%d)",
                        exc, delay, attempt + 1, max_retries,
                    )
                    time.sleep(delay)
                    continue
                raise ConnectionFailure(
                    f"Connection to {url} failed after {attempt + 1} attempts: {exc}",
                    context={"url": url},
                ) from exc

            if response.status_code < 500 or attempt == max_retries:
                break
            delay = self._backoff * 2 ** attempt
            logger.debug(
                "Server error %d, retrying in %ss (attempt %d/%d)",
                response.status_code, delay, attempt + 1, max_retries,
            )
            time.sleep(delay)

        logger.debug("%s %s -> %d", method, url, response.status_code)
        return response
