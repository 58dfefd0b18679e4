"""Cache commands -- inspect and invalidate cached Strapi responses.

Provides the ``strapiq cache`` group::

    strapiq cache list articles
    strapiq cache clear articles --items
    strapiq cache item articles 42
    strapiq cache purge
"""

from __future__ import annotations

import typer

from strapiq.commands import get_client
from strapiq.output import info, print_table, success

cache_app = typer.Typer(no_args_is_help=True)


@cache_app.command("list")
def cache_list(
    ctx: typer.Context,
    collection: str = typer.Argument(help="Collection type."),
) -> None:
    """List the cached page URLs and item keys recorded for COLLECTION."""
    index = get_client(ctx).index
    rows = [["page", key] for key in index.keys(collection)]
    rows += [["item", key] for key in index.item_keys(collection)]
    if not rows:
        info(f"Nothing cached for {collection}")
        return
    print_table(["kind", "key"], rows, title=f"Cached {collection}")


@cache_app.command("clear")
def cache_clear(
    ctx: typer.Context,
    collection: str = typer.Argument(help="Collection type whose cached pages to evict."),
    items: bool = typer.Option(False, "--items", help="Also evict cached single items."),
) -> None:
    """Evict every cached page of COLLECTION."""
    evicted = get_client(ctx).collection(collection).clear_collection_cache(including_items=items)
    success(f"Evicted {evicted} cached entries for {collection}")


@cache_app.command("item")
def cache_item(
    ctx: typer.Context,
    collection: str = typer.Argument(help="Collection type."),
    item_id: str = typer.Argument(metavar="ID", help="Id of the cached item."),
) -> None:
    """Evict one item cached by a single-entry lookup."""
    if get_client(ctx).collection(collection).clear_item_cache(item_id):
        success(f"Evicted {collection} item {item_id}")
    else:
        info(f"{collection} item {item_id} was not cached")


@cache_app.command("purge")
def cache_purge(ctx: typer.Context) -> None:
    """Empty the whole cache, including the login token."""
    get_client(ctx).cache.clear()
    success("Cache purged")
