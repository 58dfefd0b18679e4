"""Query commands -- fetch collections and single entries.

``strapiq query`` runs a :class:`~strapiq.collection.CollectionQuery`
configured from flags and prints the normalised result to stdout;
``strapiq url`` prints the request URL instead of fetching it.  Filters
are given as ``FIELD[:OPERATOR]=VALUE``::

    strapiq query articles --sort publishedAt --limit 10 \\
        --filter category.slug=news --filter title:containsi=strapi
    strapiq find articles 42 --json
"""

from __future__ import annotations

from typing import Optional

import typer

from strapiq.collection import CollectionQuery
from strapiq.commands import get_client
from strapiq.exit_codes import EXIT_INVALID_USAGE, EXIT_NOT_FOUND
from strapiq.filters import FilterOperator
from strapiq.output import debug, error, print_line, print_records, warning


def parse_filter(expression: str) -> tuple[str, str, str]:
    """Split ``FIELD[:OP]=VALUE`` into ``(field, operator, value)``.

    The operator defaults to ``$eq`` and gets a ``$`` prefix when missing.

    Raises:
        ValueError: If there is no ``=`` or no field name.
    """
    target, sep, value = expression.partition("=")
    if not sep:
        raise ValueError(f"Expected FIELD[:OP]=VALUE, got: {expression}")
    field_name, _, operator = target.partition(":")
    field_name = field_name.strip()
    if not field_name:
        raise ValueError(f"Missing field name in filter: {expression}")
    operator = operator.strip() or FilterOperator.EQ
    if not operator.startswith("$"):
        operator = "$" + operator
    return field_name, operator, value


def _configure(
    query: CollectionQuery,
    sort: Optional[list[str]],
    asc: bool,
    limit: Optional[int],
    page: Optional[int],
    filters: Optional[list[str]],
    populate: Optional[list[str]],
    no_populate: bool,
    deep: Optional[int],
    drafts: bool,
) -> CollectionQuery:
    if sort:
        query.sort(sort[0] if len(sort) == 1 else list(sort), "ASC" if asc else "DESC")
    elif asc:
        query.sort(query.spec.sort_by, "ASC")
    if limit is not None:
        query.limit(limit)
    if page is not None:
        query.page(page)

    if no_populate:
        query.no_populate()
    elif deep is not None:
        query.deep(deep)
    elif populate:
        query.populate(populate)

    if drafts:
        query.drafts()

    for expression in filters or []:
        try:
            field_name, operator, value = parse_filter(expression)
        except ValueError as exc:
            error(str(exc))
            raise typer.Exit(code=EXIT_INVALID_USAGE) from None
        query.field(field_name).filter(value, operator)
    if filters and query.api_version == 3:
        warning("Strapi v3 does not support filters; --filter is ignored")
    return query


def query_command(
    ctx: typer.Context,
    collection: str = typer.Argument(help="Collection type, e.g. 'articles'."),
    sort: Optional[list[str]] = typer.Option(None, "--sort", "-s", help="Sort field (repeatable)."),
    asc: bool = typer.Option(False, "--asc", help="Sort ascending instead of descending."),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", min=1, help="Records per page."),
    page: Optional[int] = typer.Option(None, "--page", min=1, help="1-based page number."),
    filters: Optional[list[str]] = typer.Option(
        None, "--filter", "-f", help="FIELD[:OP]=VALUE (repeatable)."
    ),
    populate: Optional[list[str]] = typer.Option(
        None, "--populate", "-p", help="Populate only this relation (repeatable)."
    ),
    no_populate: bool = typer.Option(False, "--no-populate", help="Do not populate relations."),
    deep: Optional[int] = typer.Option(None, "--deep", min=1, help="Deep-populate N levels."),
    drafts: bool = typer.Option(False, "--drafts", help="Include unpublished entries."),
    absolute: bool = typer.Option(False, "--absolute", help="Make asset URLs absolute."),
    squash: bool = typer.Option(False, "--squash", help="Replace file objects by their URL."),
    raw: bool = typer.Option(False, "--raw", help="Print the data without flattening."),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the response cache."),
) -> None:
    """Fetch a page of COLLECTION and print the records.

    Example::

        strapiq query articles --sort publishedAt --limit 5 --filter slug=hello
    """
    client = get_client(ctx)
    query = _configure(
        client.collection(collection),
        sort, asc, limit, page, filters, populate, no_populate, deep, drafts,
    )
    if absolute:
        query.absolute()
    if squash:
        query.squash()
    if raw:
        query.flatten(False)

    debug(f"GET {query.url()}")
    data = query.query(use_cache=not no_cache)
    debug(f"meta: {query.meta()}")
    print_records(data)


def find_command(
    ctx: typer.Context,
    collection: str = typer.Argument(help="Collection type, e.g. 'articles'."),
    item_id: str = typer.Argument(metavar="ID", help="Entry id (or documentId on v5)."),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the response cache."),
) -> None:
    """Fetch one entry of COLLECTION by id."""
    client = get_client(ctx)
    item = client.collection(collection).find_one_by_id(item_id, use_cache=not no_cache)
    if item is None:
        error(f"No {collection} entry with id {item_id}")
        raise typer.Exit(code=EXIT_NOT_FOUND)
    print_records(item)


def url_command(
    ctx: typer.Context,
    collection: str = typer.Argument(help="Collection type, e.g. 'articles'."),
    sort: Optional[list[str]] = typer.Option(None, "--sort", "-s", help="Sort field (repeatable)."),
    asc: bool = typer.Option(False, "--asc", help="Sort ascending instead of descending."),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", min=1, help="Records per page."),
    page: Optional[int] = typer.Option(None, "--page", min=1, help="1-based page number."),
    filters: Optional[list[str]] = typer.Option(
        None, "--filter", "-f", help="FIELD[:OP]=VALUE (repeatable)."
    ),
    populate: Optional[list[str]] = typer.Option(
        None, "--populate", "-p", help="Populate only this relation (repeatable)."
    ),
    no_populate: bool = typer.Option(False, "--no-populate", help="Do not populate relations."),
    deep: Optional[int] = typer.Option(None, "--deep", min=1, help="Deep-populate N levels."),
    drafts: bool = typer.Option(False, "--drafts", help="Include unpublished entries."),
) -> None:
    """Print the request URL a query would fetch, without fetching it."""
    client = get_client(ctx)
    query = _configure(
        client.collection(collection),
        sort, asc, limit, page, filters, populate, no_populate, deep, drafts,
    )
    print_line(query.url())
