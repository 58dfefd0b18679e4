"""Exception hierarchy for strapiq.

All exceptions inherit from :class:`StrapiError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`strapiq.exit_codes`,
the HTTP ``status_code`` that triggered it (when there was one) and a
``context`` dict with the request URL and response body for diagnostics.
The CLI entry point in :func:`strapiq.app.main` catches ``StrapiError`` and
exits with the appropriate code.

Subclass hierarchy::

    StrapiError (exit 1)
    +-- BadRequestError         (exit 7)  HTTP 400
    +-- NotFoundError           (exit 4)  HTTP 404
    +-- PermissionDeniedError   (exit 3)  HTTP 401 / 403
    +-- ConnectionFailure       (exit 6)  no HTTP exchange completed
    +-- UnknownAuthMethodError  (exit 3)  bad ``auth`` setting
    +-- ConfigError             (exit 2)
    +-- UnknownError            (exit 5)  any other status, empty body
        +-- TokenRefreshLoopError
        +-- NormalizationError
"""

from __future__ import annotations

from typing import Any, Optional

from strapiq.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_BAD_REQUEST,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)


class StrapiError(Exception):
    """Base exception for all strapiq errors.

    Args:
        message: Human-readable error description.
        status_code: HTTP status that caused the error, if any.
        context: Extra diagnostic data (``url``, ``status``,
            ``response_body``).
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(
        self,
        message: str = "",
        status_code: Optional[int] = None,
        context: Optional[dict[str, Any]] = None,
        exit_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.context = context or {}
        if exit_code is not None:
            self.exit_code = exit_code


class BadRequestError(StrapiError):
    """Raised when Strapi answers HTTP 400."""

    exit_code = EXIT_BAD_REQUEST


class NotFoundError(StrapiError):
    """Raised when Strapi answers HTTP 404."""

    exit_code = EXIT_NOT_FOUND


class PermissionDeniedError(StrapiError):
    """Raised on HTTP 401 / 403, including a rejected login."""

    exit_code = EXIT_AUTH_FAILURE


class ConnectionFailure(StrapiError):
    """Raised when no HTTP exchange completed (DNS, refused, timeout, TLS).

    Kept apart from the status-code errors so callers can tell "server
    reachable but rejected us" from "server unreachable".
    """

    exit_code = EXIT_CONNECTION_ERROR


class UnknownAuthMethodError(StrapiError):
    """Raised at client construction when ``auth`` is not a recognised method."""

    exit_code = EXIT_AUTH_FAILURE


class ConfigError(StrapiError):
    """Raised for configuration problems (unsupported version, invalid file or value)."""

    exit_code = EXIT_INVALID_USAGE


class UnknownError(StrapiError):
    """Raised for any other non-success status or an empty / unusable body."""

    exit_code = EXIT_SERVER_ERROR


class TokenRefreshLoopError(UnknownError):
    """Raised when a freshly fetched token is already expired."""


class NormalizationError(UnknownError):
    """Raised when a response is nested deeper than the normaliser allows."""
