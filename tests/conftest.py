"""Shared test fixtures for strapiq.

Provides isolated configuration environments, disk caches under
``tmp_path``, clients wired to an :class:`httpx.MockTransport`, JWT
builders and a CLI runner.  Fixtures are discovered by pytest and
available to every test module without imports.
"""

from __future__ import annotations

import base64
import json
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, Optional

import httpx
import pytest

from strapiq.cache import DiskCache
from strapiq.client import StrapiClient
from strapiq.config import ENV_VARS
from strapiq.models import StrapiConfig
from strapiq.output import reset_output
from strapiq.transport import HttpxTransport

API_URL = "https://cms.test/api"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Drop the output manager a CLI test installed, with its flags."""
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Environment isolation
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Clear every ``STRAPI_*`` variable, point XDG_CACHE_HOME at tmp_path and chdir there."""
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "xdg-cache"))
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Configuration and cache
# ---------------------------------------------------------------------------


@pytest.fixture
def config(tmp_path: Path) -> StrapiConfig:
    """Public v4 configuration with its cache under tmp_path."""
    return StrapiConfig(url=API_URL, version=4, cache_dir=tmp_path / "cache")


@pytest.fixture
def disk_cache(tmp_path: Path) -> DiskCache:
    cache = DiskCache(tmp_path / "cache")
    yield cache
    cache.close()


# ---------------------------------------------------------------------------
# HTTP mocking
# ---------------------------------------------------------------------------


class MockStrapi:
    """Canned Strapi server for :class:`httpx.MockTransport`.

    Routes are matched on ``(method, path)``; the query string is ignored
    for matching but every request is recorded with its full URL.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def add(
        self,
        method: str,
        path: str,
        json_body: Any = None,
        status_code: int = 200,
        content: Optional[bytes] = None,
    ) -> None:
        """Queue a response; the last queued response for a route repeats."""
        if content is not None:
            response = httpx.Response(status_code, content=content)
        else:
            response = httpx.Response(status_code, json=json_body)
        self.routes.setdefault((method, path), []).append(response)

    def urls(self, method: str = "GET") -> list[str]:
        return [str(r.url) for r in self.requests if r.method == method]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queued = self.routes.get((request.method, request.url.path))
        if not queued:
            return httpx.Response(404, json={"error": {"name": "NotFoundError", "message": "Not Found"}})
        response = queued.pop(0) if len(queued) > 1 else queued[0]
        return httpx.Response(
            response.status_code, content=response.content, headers=response.headers
        )


@pytest.fixture
def server() -> MockStrapi:
    return MockStrapi()


@pytest.fixture
def make_client(
    server: MockStrapi, disk_cache: DiskCache
) -> Callable[..., StrapiClient]:
    """Factory for clients talking to the :class:`MockStrapi` fixture.

    Keyword arguments override :class:`StrapiConfig` fields.
    """
    clients: list[StrapiClient] = []

    def _make(**overrides: Any) -> StrapiClient:
        settings = {"url": API_URL, "version": 4, **overrides}
        cfg = StrapiConfig(**settings)
        transport = HttpxTransport(cfg, transport=httpx.MockTransport(server), backoff=0)
        client = StrapiClient(cfg, transport=transport, cache=disk_cache)
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.close()


# ---------------------------------------------------------------------------
# JWT helpers
# ---------------------------------------------------------------------------


def _b64url(data: dict[str, Any]) -> str:
    raw = base64.urlsafe_b64encode(json.dumps(data).encode()).decode()
    return raw.rstrip("=")


@pytest.fixture
def make_jwt() -> Callable[..., str]:
    """Build an unsigned compact JWT; ``exp_in`` is seconds from now, ``None`` omits the claim."""

    def _make(exp_in: Optional[float] = 3600, **claims: Any) -> str:
        payload = dict(claims)
        if exp_in is not None:
            payload["exp"] = int(time.time() + exp_in)
        header = _b64url({"alg": "HS256", "typ": "JWT"})
        return f"{header}.{_b64url(payload)}.signature"

    return _make


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
