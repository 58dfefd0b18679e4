"""strapiq -- a query builder and client for the Strapi headless CMS.

Queries are built fluently, rendered to the REST dialect of the
configured Strapi major version (3, 4 or 5), cached per request URL, and
their responses normalised into flat records::

    from strapiq import StrapiClient, StrapiConfig

    with StrapiClient(StrapiConfig(url="https://cms.example.com/api")) as client:
        articles = client.collection("articles")
        articles.field("category.slug").filter("news")
        for article in articles.order("publishedAt").limit(10).query():
            print(article["title"])

Modules:
    client: Shared connection, status-to-error mapping, cached GETs.
    collection: The fluent :class:`CollectionQuery`.
    dialect: Version-specific query rendering.
    normalize: Response flattening and asset URL rewriting.
    token: Login token caching and refresh.
    cache: Disk cache and per-collection invalidation index.
    config: Optional loading from JSON files and ``STRAPI_*`` variables.
    app: The ``strapiq`` command line.
"""

__version__ = "0.1.0"

from strapiq.client import StrapiClient  # noqa: E402
from strapiq.collection import CollectionQuery  # noqa: E402
from strapiq.exceptions import StrapiError  # noqa: E402
from strapiq.filters import FilterOperator  # noqa: E402
from strapiq.models import SortOrder, StrapiConfig  # noqa: E402

__all__ = [
    "CollectionQuery",
    "FilterOperator",
    "SortOrder",
    "StrapiClient",
    "StrapiConfig",
    "StrapiError",
    "__version__",
]
