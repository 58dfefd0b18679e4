"""Bearer-token lifecycle.

With ``auth="password"`` strapiq logs in through ``POST /auth/local`` and
caches the issued JWT under :data:`TOKEN_CACHE_KEY` for
``token_cache_ttl`` seconds.  The cache TTL and the token's own ``exp``
claim need not agree, so every :meth:`TokenManager.get_token` also decodes
the claim.  An expired token is evicted and fetched again exactly once; if
the fresh token is expired too (clock skew, misconfigured server) a
:class:`~strapiq.exceptions.TokenRefreshLoopError` is raised.

With ``auth="token"`` the configured API token is returned as-is, and
with ``auth="public"`` there is no token at all.
"""

from __future__ import annotations

import base64
import json
import logging
import time
from typing import Any, Optional

from strapiq.cache.cache import KeyValueCache
from strapiq.exceptions import (
    BadRequestError,
    PermissionDeniedError,
    TokenRefreshLoopError,
    UnknownError,
)
from strapiq.models import AuthMethod, StrapiConfig
from strapiq.transport import Transport

logger = logging.getLogger(__name__)

TOKEN_CACHE_KEY = "strapi-token"
LOGIN_PATH = "/auth/local"


def decode_payload(token: str) -> dict[str, Any]:
    """Decode the claims segment of a compact JWT without verifying it.

    Raises:
        UnknownError: If the token is not three dot-separated segments or
            the middle one is not base64url-encoded JSON.
    """
    parts = token.split(".") if isinstance(token, str) else []
    if len(parts) != 3:
        raise UnknownError(f"Issue with fetching token: expected 3 segments, got {len(parts)}")
    segment = parts[1].replace("-", "+").replace("_", "/")
    segment += "=" * (-len(segment) % 4)
    try:
        payload = json.loads(base64.b64decode(segment))
    except (ValueError, UnicodeDecodeError) as exc:
        raise UnknownError(f"Issue with fetching token: {exc}") from exc
    if not isinstance(payload, dict):
        raise UnknownError("Issue with fetching token: claims are not an object")
    return payload


def is_expired(token: str, now: Optional[float] = None) -> bool:
    """Whether the token's ``exp`` claim lies in the past.

    A token without an ``exp`` claim never expires.
    """
    exp = decode_payload(token).get("exp")
    if exp is None:
        return False
    try:
        exp_timestamp = float(exp)
    except (TypeError, ValueError) as exc:
        raise UnknownError(f"Issue with fetching token: invalid exp claim {exp!r}") from exc
    return exp_timestamp < (time.time() if now is None else now)


class TokenManager:
    """Obtains, caches and refreshes the bearer token for one Strapi instance.

    Args:
        config: Supplies ``url``, ``auth``, credentials and
            ``token_cache_ttl``.
        transport: Used for the login request.
        cache: Shared store for the cached token.
    """

    def __init__(self, config: StrapiConfig, transport: Transport, cache: KeyValueCache) -> None:
        self._config = config
        self._transport = transport
        self._cache = cache

    def get_token(self, prevent_refresh_loop: bool = False) -> Optional[str]:
        """Return a bearer token that is not known to be expired.

        Args:
            prevent_refresh_loop: Set on the single retry after an expired
                token was evicted; a second expiry is then fatal.

        Returns:
            The token, or ``None`` for public access.

        Raises:
            TokenRefreshLoopError: If a freshly fetched token is expired.
            PermissionDeniedError: If the login credentials are rejected.
            BadRequestError: If the login request is malformed.
            ConnectionFailure: If the login request could not be sent.
        """
        if self._config.auth == AuthMethod.PUBLIC.value:
            return None
        if self._config.auth == AuthMethod.TOKEN.value:
            return self._config.token

        token = self._cache.remember(TOKEN_CACHE_KEY, self._config.token_cache_ttl, self.login)
        if is_expired(token):
            self.forget()
            if prevent_refresh_loop:
                raise TokenRefreshLoopError("Token refresh loop detected", status_code=503)
            logger.info("Cached Strapi token expired, logging in again")
            return self.get_token(prevent_refresh_loop=True)
        return token

    def forget(self) -> None:
        """Evict the cached token."""
        self._cache.forget(TOKEN_CACHE_KEY)

    def login(self) -> str:
        """Log in with the configured identifier and password.

        Returns:
            The JWT from the response's ``jwt`` field.
        """
        url = self._config.url + LOGIN_PATH
        response = self._transport.post(
            url,
            {"identifier": self._config.username, "password": self._config.password},
        )
        context = {"url": url, "status": response.status_code}

        if response.status_code in (401, 403):
            raise PermissionDeniedError(
                "Strapi rejected the login credentials",
                status_code=response.status_code,
                context=context,
            )
        if response.status_code == 400:
            raise BadRequestError(
                f"Bad request in strapi login: {response.text}",
                status_code=400,
                context={**context, "response_body": response.text},
            )
        if not response.is_success:
            raise UnknownError(
                f"[{response.status_code}] Strapi login failed",
                status_code=response.status_code,
                context={**context, "response_body": response.text},
            )

        try:
            token = response.json()["jwt"]
        except (ValueError, KeyError, TypeError) as exc:
            raise UnknownError("Strapi login response has no jwt", context=context) from exc
        logger.info("Logged in to Strapi as %s", self._config.username)
        return token
