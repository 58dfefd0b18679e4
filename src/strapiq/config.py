"""Configuration loading with XDG paths and precedence resolution.

The library itself never reads the environment: a
:class:`~strapiq.models.StrapiConfig` is always passed to
:class:`~strapiq.client.StrapiClient` explicitly.  This module is the
opt-in loader the CLI uses to build one.

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.strapiq/`` on macOS and Windows.  See :func:`get_cache_dir`.
* **Precedence** -- :func:`load_config` merges, low to high: model
  defaults, a JSON file, ``STRAPI_*`` environment variables and explicit
  overrides.
"""

from __future__ import annotations

import json
import os
import platform
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import ValidationError

from strapiq.exceptions import ConfigError
from strapiq.models import StrapiConfig

_APP_NAME = "strapiq"
_PROJECT_CONFIG_FILENAME = "strapiq.json"

ENV_VARS: dict[str, str] = {
    "STRAPI_URL": "url",
    "STRAPI_IMAGES": "upload_url",
    "STRAPI_VERSION": "version",
    "STRAPI_AUTH": "auth",
    "STRAPI_USER": "username",
    "STRAPI_PASS": "password",
    "STRAPI_TOKEN": "token",
    "STRAPI_V4_COMPATIBILITY": "compatibility_mode",
    "STRAPI_CACHE": "cache_ttl",
    "STRAPI_TOKEN_CACHE_TTL": "token_cache_ttl",
    "STRAPI_CACHE_INDEX_MAX": "cache_index_max_size",
    "STRAPI_DEEP": "populate_deep",
    "STRAPI_SQUASH": "squash_image",
    "STRAPI_ABSOLUTE": "absolute_url",
    "STRAPI_TIMEOUT": "timeout",
    "STRAPI_VERIFY": "verify_ssl",
    "STRAPI_RETRIES": "max_retries",
}
"""Environment variable to :class:`~strapiq.models.StrapiConfig` field."""


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def get_cache_dir() -> Path:
    """Return the cache directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CACHE_HOME/strapiq/`` (default ``~/.cache/strapiq/``).
    On macOS/Windows: ``~/.strapiq/cache/``.
    """
    if _is_xdg_platform():
        env_value = os.environ.get("XDG_CACHE_HOME", "")
        base = Path(env_value) if env_value else Path.home() / ".cache"
        path = base / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}" / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Sources ---


def load_file(path: Union[str, Path]) -> dict[str, Any]:
    """Read a JSON configuration file holding :class:`StrapiConfig` fields.

    Raises:
        ConfigError: If the file is missing, is not valid JSON, or does not
            hold a JSON object.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config file at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    return data


def load_env(environ: Optional[Mapping[str, str]] = None) -> dict[str, str]:
    """Collect the ``STRAPI_*`` variables that are set and non-empty."""
    environ = os.environ if environ is None else environ
    return {
        field_name: environ[var]
        for var, field_name in ENV_VARS.items()
        if environ.get(var, "") != ""
    }


# --- Precedence resolution ---


def load_config(
    path: Optional[Union[str, Path]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> StrapiConfig:
    """Build a :class:`StrapiConfig` from every configuration source.

    Precedence (high to low):
        1. *overrides*
        2. ``STRAPI_*`` environment variables (see :data:`ENV_VARS`)
        3. The JSON file at *path*, or ``./strapiq.json`` when present
        4. Model defaults

    Raises:
        ConfigError: If a source cannot be read or the merged values fail
            validation.
    """
    values: dict[str, Any] = {}

    if path is not None:
        values.update(load_file(path))
    else:
        project_file = Path.cwd() / _PROJECT_CONFIG_FILENAME
        if project_file.is_file():
            values.update(load_file(project_file))

    values.update(load_env())
    if overrides:
        values.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return StrapiConfig.model_validate(values)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
