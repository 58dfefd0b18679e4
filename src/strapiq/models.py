"""Pydantic models and enums shared across strapiq.

**Configuration** -- :class:`StrapiConfig` holds everything a
:class:`~strapiq.client.StrapiClient` needs: where the API lives, which
Strapi major version it speaks, how to authenticate, and the default
cache and response-shaping behaviour.  It is always passed explicitly;
:func:`strapiq.config.load_config` is an opt-in helper that builds one
from a JSON file and ``STRAPI_*`` environment variables.

**Query enums** -- :class:`SortOrder`, :class:`PopulateMode` and
:class:`AuthMethod`.
"""

from __future__ import annotations

import enum
import re
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class AuthMethod(str, enum.Enum):
    """Supported ways of authenticating against Strapi.

    ``PUBLIC`` sends no credentials, ``PASSWORD`` logs in through
    ``/auth/local`` and caches the issued JWT, ``TOKEN`` sends a
    pre-issued API token as-is.
    """

    PUBLIC = "public"
    PASSWORD = "password"
    TOKEN = "token"


class SortOrder(str, enum.Enum):
    """Sort direction rendered after the field name (``field:ASC``)."""

    ASC = "ASC"
    DESC = "DESC"


class PopulateMode(str, enum.Enum):
    """How related resources are populated inline.

    ``ALL`` renders ``populate=*`` (or the deep-populate plugin parameter),
    ``NONE`` omits the populate clause, ``CUSTOM`` populates only the
    listed fields.
    """

    NONE = "none"
    ALL = "all"
    CUSTOM = "custom"


SUPPORTED_VERSIONS = (3, 4, 5)
"""Strapi major versions with a query dialect."""


class StrapiConfig(BaseModel):
    """Connection and behaviour settings for a Strapi instance.

    ``auth`` is deliberately a plain string: an unknown value is reported
    by :class:`~strapiq.client.StrapiClient` as
    :class:`~strapiq.exceptions.UnknownAuthMethodError` rather than as a
    validation error.

    Example::

        StrapiConfig(
            url="https://cms.example.com/api",
            version=4,
            auth="password",
            username="reader@example.com",
            password="secret",
        )
    """

    url: str = Field(
        default="http://localhost:1337", description="API base URL, e.g. https://cms/api"
    )
    upload_url: Optional[str] = Field(
        default=None,
        description="Base URL prefixed to relative asset paths (defaults to url, "
        "without a trailing /api on v4 and v5)",
    )
    version: int = Field(default=4, description="Strapi major version: 3, 4 or 5")
    auth: str = Field(default="public", description="Auth method: public, password, token")
    username: str = Field(default="", description="Login identifier for password auth")
    password: str = Field(default="", description="Login password for password auth")
    token: str = Field(default="", description="Pre-issued API token for token auth")
    compatibility_mode: bool = Field(
        default=False,
        description="Ask a v5 server for v4-shaped responses (Strapi-Response-Format: v4)",
    )
    cache_enabled: bool = Field(default=True, description="Cache GET responses")
    cache_ttl: int = Field(default=3600, description="Response cache TTL in seconds")
    token_cache_ttl: int = Field(default=600, description="Login token cache TTL in seconds")
    cache_index_max_size: int = Field(
        default=1000, description="Maximum number of keys kept per collection cache index"
    )
    cache_dir: Optional[Path] = Field(
        default=None, description="Directory for the disk cache (defaults to the XDG cache dir)"
    )
    populate_deep: int = Field(
        default=0, description="Depth for the populate-deep plugin (0 disables it)"
    )
    squash_image: bool = Field(default=False, description="Replace file objects by their URL")
    absolute_url: bool = Field(default=False, description="Prefix relative asset URLs")
    timeout: float = Field(default=60, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify TLS certificates")
    max_retries: int = Field(
        default=0, description="Retries on 5xx and connection errors (exponential backoff)"
    )

    @field_validator("url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @model_validator(mode="after")
    def _default_upload_url(self) -> StrapiConfig:
        if not self.upload_url:
            upload_url = self.url
            if self.version in (4, 5):
                upload_url = re.sub(r"/api$", "", upload_url)
            self.upload_url = upload_url
        return self
