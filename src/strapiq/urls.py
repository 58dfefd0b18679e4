"""Query URL construction.

Pure functions that turn a collection name and query settings into the
request URL.  The URL doubles as the response cache key, so two logically
equal queries must render byte-identical strings: default page size and
first page are never rendered, and empty fragments are dropped.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Optional, Union

from strapiq.dialect import QueryDialect, SortSpec
from strapiq.models import SortOrder


def build_sort(
    dialect: QueryDialect,
    sort_by: Optional[SortSpec],
    sort_order: Union[SortOrder, str] = SortOrder.DESC,
) -> str:
    """Render only the sort clause for *dialect*."""
    return dialect.render_sort(sort_by, sort_order)


def build_query_url(
    api_url: str,
    dialect: QueryDialect,
    collection: str,
    sort_by: Optional[SortSpec],
    sort_order: Union[SortOrder, str],
    limit: int,
    page: int,
    extra: Iterable[str] = (),
) -> str:
    """Build the GET URL for a collection query.

    Args:
        api_url: API base URL without a trailing slash.
        dialect: Query dialect of the target Strapi version.
        collection: Collection name, optionally followed by a sub-path or
            its own query string (``articles/5``, ``search?q=x``).
        sort_by: A field name, or a sequence of names / ``(field, order)``
            pairs.
        sort_order: Default sort direction.
        limit: Page size.
        page: 1-based page number.
        extra: Pre-rendered fragments (populate, drafts, filters) appended
            verbatim in order.

    Returns:
        The absolute request URL.

    Example::

        url = build_query_url("https://cms/api", ModernDialect(), "articles",
                              "publishedAt", SortOrder.DESC, 100, 1, ["populate=*"])
        # https://cms/api/articles?sort=publishedAt:DESC&populate=*
    """
    params = [dialect.render_sort(sort_by, sort_order)]
    params.extend(dialect.render_pagination(limit, page))
    params.extend(fragment.strip("&") for fragment in extra)
    query = "&".join(p for p in params if p)

    url = f"{api_url}/{collection}"
    if not query:
        return url
    join = "&" if "?" in collection else "?"
    return f"{url}{join}{query}"
