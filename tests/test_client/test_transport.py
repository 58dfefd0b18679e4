"""Tests for the httpx transport."""

from __future__ import annotations

import httpx
import pytest

from strapiq.exceptions import ConnectionFailure
from strapiq.models import StrapiConfig
from strapiq.transport import HttpxTransport


def _transport(handler, **config) -> HttpxTransport:
    cfg = StrapiConfig(url="https://cms.test/api", **config)
    return HttpxTransport(cfg, transport=httpx.MockTransport(handler), backoff=0)


class TestHeaders:
    def test_bearer_header(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        with _transport(handler) as transport:
            transport.get("https://cms.test/api/articles", "tok")
            transport.get("https://cms.test/api/articles")
        assert seen[0].headers["Authorization"] == "Bearer tok"
        assert "Authorization" not in seen[1].headers
        assert seen[0].headers["Accept"] == "application/json"

    def test_v4_compatibility_header_on_v5(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        with _transport(handler, version=5, compatibility_mode=True) as transport:
            transport.get("https://cms.test/api/articles")
        assert seen[0].headers["Strapi-Response-Format"] == "v4"

    def test_no_compatibility_header_on_v4(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        with _transport(handler, version=4, compatibility_mode=True) as transport:
            transport.get("https://cms.test/api/articles")
        assert "Strapi-Response-Format" not in seen[0].headers


class TestRetry:
    def test_retries_server_errors(self) -> None:
        statuses = iter([502, 503, 200])

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(next(statuses), json={})

        with _transport(handler, max_retries=2) as transport:
            response = transport.get("https://cms.test/api/articles")
        assert response.status_code == 200

    @pytest.mark.parametrize("max_retries", [0, 1, 3])
    def test_returns_last_server_error(self, max_retries) -> None:
        statuses = iter([502] * max_retries + [503])
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(next(statuses), json={})

        with _transport(handler, max_retries=max_retries) as transport:
            assert transport.get("https://cms.test/api/articles").status_code == 503
        assert len(calls) == max_retries + 1

    def test_client_errors_not_retried(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(404, json={})

        with _transport(handler, max_retries=3) as transport:
            transport.get("https://cms.test/api/articles")
        assert len(calls) == 1

    def test_connection_error_raises_connection_failure(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.ConnectError("refused", request=request)

        with _transport(handler, max_retries=2) as transport:
            with pytest.raises(ConnectionFailure) as exc_info:
                transport.get("https://cms.test/api/articles")
        assert len(calls) == 3
        assert exc_info.value.context["url"] == "https://cms.test/api/articles"


class TestBodies:
    def test_json_body(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        with _transport(handler) as transport:
            transport.put("https://cms.test/api/articles/1", {"data": {"title": "A"}})
        assert seen[0].method == "PUT"
        assert seen[0].headers["content-type"] == "application/json"

    def test_multipart_body(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        with _transport(handler) as transport:
            transport.post_multipart(
                "https://cms.test/api/articles",
                {"data": '{"title": "A"}'},
                [("files.cover", ("cover.png", b"PNG"))],
            )
        body = seen[0].read()
        assert seen[0].headers["content-type"].startswith("multipart/form-data")
        assert b'name="files.cover"; filename="cover.png"' in body
        assert b'{"title": "A"}' in body
