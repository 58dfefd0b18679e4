"""Tests for the strapiq command line.

Commands run through Typer's CliRunner against the root app; a client
wired to the mocked server is passed in through ``obj`` so that no
configuration is read.
"""

from __future__ import annotations

import json
from urllib.parse import unquote

import pytest

from strapiq.app import app, main
from strapiq.commands.query import parse_filter
from strapiq.exceptions import NotFoundError
from strapiq.exit_codes import EXIT_INVALID_USAGE, EXIT_NOT_FOUND

ARTICLES_PAGE = {
    "data": [{"id": 1, "attributes": {"title": "A"}}],
    "meta": {"pagination": {"total": 1}},
}


@pytest.fixture()
def client(make_client):
    return make_client(password="secret")


class TestParseFilter:
    def test_plain_equality(self) -> None:
        assert parse_filter("slug=hello") == ("slug", "$eq", "hello")

    def test_operator_gets_prefix(self) -> None:
        assert parse_filter("title:containsi=a=b") == ("title", "$containsi", "a=b")

    def test_prefixed_operator_kept(self) -> None:
        assert parse_filter("views:$gt=5") == ("views", "$gt", "5")

    @pytest.mark.parametrize("expression", ["slug", "=x", ":eq=x"])
    def test_invalid(self, expression: str) -> None:
        with pytest.raises(ValueError):
            parse_filter(expression)


class TestQueryCommand:
    def test_prints_records(self, cli_runner, client, server) -> None:
        server.add("GET", "/api/articles", ARTICLES_PAGE)
        result = cli_runner.invoke(
            app,
            ["--json", "query", "articles", "--limit", "5", "--filter", "category.slug=news"],
            obj={"client": client},
        )
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == [{"id": 1, "title": "A"}]
        url = unquote(server.urls()[0])
        assert "pagination[pageSize]=5" in url
        assert "filters[category][slug][$eq]=news" in url

    def test_raw(self, cli_runner, client, server) -> None:
        server.add("GET", "/api/articles", ARTICLES_PAGE)
        result = cli_runner.invoke(
            app, ["--json", "query", "articles", "--raw"], obj={"client": client}
        )
        assert json.loads(result.stdout) == ARTICLES_PAGE["data"]

    def test_not_found_propagates(self, cli_runner, client) -> None:
        result = cli_runner.invoke(app, ["--json", "query", "missing"], obj={"client": client})
        assert isinstance(result.exception, NotFoundError)


class TestUrlCommand:
    def test_prints_url(self, cli_runner, client, server) -> None:
        result = cli_runner.invoke(
            app,
            [
                "url", "articles",
                "--sort", "title", "--asc",
                "--filter", "title:containsi=hello",
                "--populate", "author",
                "--drafts",
            ],
            obj={"client": client},
        )
        assert result.exit_code == 0, result.output
        assert result.stdout.strip() == (
            "https://cms.test/api/articles?sort=title:ASC&populate[author][populate]=*"
            "&publicationState=preview&filters[title][$containsi]=hello"
        )
        assert server.requests == []

    def test_bad_filter(self, cli_runner, client) -> None:
        result = cli_runner.invoke(
            app, ["url", "articles", "--filter", "oops"], obj={"client": client}
        )
        assert result.exit_code == EXIT_INVALID_USAGE

    def test_legacy_filter_warning(self, cli_runner, make_client) -> None:
        result = cli_runner.invoke(
            app,
            ["--no-color", "url", "articles", "--filter", "slug=a"],
            obj={"client": make_client(version=3)},
        )
        assert result.exit_code == 0, result.output
        assert "https://cms.test/api/articles?_sort=id:DESC\n" in result.stdout
        assert "filters[" not in result.output
        assert "does not support filters" in result.output


class TestFindCommand:
    def test_found(self, cli_runner, client, server) -> None:
        server.add("GET", "/api/articles/5", {"data": {"id": 5, "attributes": {"title": "E"}}})
        result = cli_runner.invoke(
            app, ["--json", "find", "articles", "5"], obj={"client": client}
        )
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == {"id": 5, "title": "E"}

    def test_missing(self, cli_runner, client) -> None:
        result = cli_runner.invoke(app, ["find", "articles", "9"], obj={"client": client})
        assert result.exit_code == EXIT_NOT_FOUND


class TestCacheCommands:
    def test_list(self, cli_runner, client, server) -> None:
        server.add("GET", "/api/articles", ARTICLES_PAGE)
        query = client.collection("articles")
        query.find_one()
        result = cli_runner.invoke(
            app, ["--json", "cache", "list", "articles"], obj={"client": client}
        )
        assert result.exit_code == 0, result.output
        rows = json.loads(result.stdout)
        assert [row["kind"] for row in rows] == ["page", "item"]
        assert rows[1]["key"] == "articles:item:1"

    def test_clear(self, cli_runner, client, server) -> None:
        server.add("GET", "/api/articles", ARTICLES_PAGE)
        client.collection("articles").query()
        result = cli_runner.invoke(app, ["cache", "clear", "articles"], obj={"client": client})
        assert result.exit_code == 0, result.output
        assert client.index.keys("articles") == []

    def test_item(self, cli_runner, client, server) -> None:
        server.add("GET", "/api/articles", ARTICLES_PAGE)
        client.collection("articles").find_one()
        result = cli_runner.invoke(
            app, ["cache", "item", "articles", "1"], obj={"client": client}
        )
        assert result.exit_code == 0, result.output
        assert client.cache.get("articles:item:1") is None

    def test_purge(self, cli_runner, client) -> None:
        client.cache.put("k", 1)
        result = cli_runner.invoke(app, ["cache", "purge"], obj={"client": client})
        assert result.exit_code == 0, result.output
        assert client.cache.get("k") is None


class TestConfigCommand:
    def test_show_masks_secrets(self, cli_runner, client) -> None:
        result = cli_runner.invoke(
            app, ["--quiet", "--json", "config", "show"], obj={"client": client}
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["url"] == "https://cms.test/api"
        assert data["password"] == "********"
        assert data["token"] == ""


class TestMain:
    def test_strapi_error_exit_code(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def _raise() -> None:
            raise NotFoundError("nothing here")

        monkeypatch.setattr("strapiq.app._install_interrupt_handler", lambda: None)
        monkeypatch.setattr("strapiq.app.app", _raise)
        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == EXIT_NOT_FOUND

    def test_version(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert result.stdout.startswith("strapiq ")
