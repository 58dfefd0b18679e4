"""Fluent collection queries.

:class:`CollectionQuery` is the main entry point of strapiq.  It is
configured with chained calls that only change its :class:`QuerySpec`
and performs I/O only when executed::

    articles = client.collection("articles")
    articles.order("publishedAt").limit(10).field("category.slug").filter("news")
    records = articles.query()
    total = articles.meta()["pagination"]["total"]

Execution renders the URL (:mod:`strapiq.urls` and
:mod:`strapiq.filters`), fetches it through the client's cache, runs the
:mod:`strapiq.normalize` pipeline and records the URL in the collection's
cache index so that :meth:`CollectionQuery.clear_collection_cache` can
invalidate every cached page later.

An instance is not meant to be configured from several threads at once;
use :meth:`CollectionQuery.copy` to derive independent queries.
"""

from __future__ import annotations

import copy
import hashlib
import json
import logging
from collections.abc import Mapping, Sequence
from contextlib import ExitStack
from dataclasses import dataclass, field as dataclass_field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Union

import httpx

from strapiq.dialect import DEFAULT_RECORD_LIMIT, SortSpec
from strapiq.exceptions import StrapiError, UnknownError
from strapiq.filters import FieldFilter, FilterOperator, FilterSet
from strapiq.models import PopulateMode, SortOrder
from strapiq.normalize import normalize_response
from strapiq.urls import build_query_url

if TYPE_CHECKING:
    from strapiq.client import StrapiClient

logger = logging.getLogger(__name__)

Record = dict[str, Any]
FileInput = Union[str, Path, Mapping[str, Any]]


@dataclass
class QuerySpec:
    """Mutable configuration of a :class:`CollectionQuery`."""

    collection: str
    sort_by: Optional[SortSpec] = "id"
    sort_order: SortOrder = SortOrder.DESC
    limit: int = DEFAULT_RECORD_LIMIT
    page: int = 1
    populate_mode: PopulateMode = PopulateMode.ALL
    populate_fields: Union[list[str], dict[str, Any]] = dataclass_field(default_factory=list)
    deep: int = 0
    include_drafts: bool = False
    flatten: bool = True
    squash_image: bool = False
    absolute_url: bool = False


def _coerce_order(order: Union[SortOrder, str]) -> SortOrder:
    if isinstance(order, SortOrder):
        return order
    return SortOrder(str(order).upper())


def _first(results: Any) -> Any:
    """First record of a result list; a single-type record is returned as-is."""
    if isinstance(results, list):
        return results[0] if results else None
    if isinstance(results, dict):
        if not results or (set(results) == {"data"} and results["data"] is None):
            return None
        return results
    return None


def _item_id(item: Any, results: Any) -> object:
    """The record's ``id``, or an md5 of the whole result when it has none."""
    item_id = item.get("id") if isinstance(item, dict) else None
    if item_id is None:
        encoded = json.dumps(results, sort_keys=True, default=str).encode()
        item_id = hashlib.md5(encoded).hexdigest()
    return item_id


class CollectionQuery:
    """Query builder and executor for one Strapi collection type.

    Args:
        client: The connection to query through.
        collection_type: Collection name as it appears in the URL
            (``"articles"``, ``"blog-posts"``).
    """

    _OPTIONS = (
        "absolute_url",
        "squash_image",
        "sort_by",
        "sort_order",
        "limit",
        "page",
        "include_drafts",
        "flatten",
    )

    def __init__(self, client: StrapiClient, collection_type: str) -> None:
        config = client.config
        self._client = client
        self._spec = QuerySpec(
            collection=collection_type,
            deep=config.populate_deep,
            squash_image=config.squash_image,
            absolute_url=config.absolute_url,
        )
        self._filters = FilterSet()
        self._results: Any = []
        self._meta: dict[str, Any] = {}

    # ------------------------------------------------------------------ #
    # Accessors
    # ------------------------------------------------------------------ #

    @property
    def collection_type(self) -> str:
        return self._spec.collection

    @property
    def spec(self) -> QuerySpec:
        return self._spec

    @property
    def filters(self) -> FilterSet:
        return self._filters

    @property
    def api_version(self) -> int:
        return self._client.api_version

    def meta(self) -> dict[str, Any]:
        """Meta of the last response (pagination etc.) plus a ``response`` timestamp."""
        return self._meta

    def results(self) -> Any:
        """Normalised data of the last executed query."""
        return self._results

    # ------------------------------------------------------------------ #
    # Configuration
    # ------------------------------------------------------------------ #

    def sort(self, sort_by: SortSpec, order: Optional[Union[SortOrder, str]] = None) -> CollectionQuery:
        """Sort by a field, or by several (names or ``(field, order)`` pairs).

        Without *order* the previously set direction is kept.
        """
        self._spec.sort_by = sort_by
        if order is not None:
            self._spec.sort_order = _coerce_order(order)
        return self

    def order(self, sort_by: str, ascending: bool = False) -> CollectionQuery:
        """Sort by *sort_by*, descending unless *ascending*."""
        self._spec.sort_by = sort_by
        self._spec.sort_order = SortOrder.ASC if ascending else SortOrder.DESC
        return self

    def limit(self, limit: int) -> CollectionQuery:
        limit = int(limit)
        if limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")
        self._spec.limit = limit
        return self

    def page(self, page: int) -> CollectionQuery:
        page = int(page)
        if page < 1:
            raise ValueError(f"page is 1-based, got {page}")
        self._spec.page = page
        return self

    def recent(self, limit: int = 20) -> CollectionQuery:
        """Newest published entries first, on the first page."""
        self._spec.sort_by = "published_at" if self.api_version == 3 else "publishedAt"
        self._spec.sort_order = SortOrder.DESC
        self._spec.page = 1
        return self.limit(limit)

    def populate(
        self, fields: Union[Sequence[str], Mapping[str, Any], None] = None
    ) -> CollectionQuery:
        """Populate every relation, or only *fields*.

        *fields* is a list of relation names (each populated with ``*``)
        or a mapping of relation name to nested populate value.
        """
        if fields:
            self._spec.populate_mode = PopulateMode.CUSTOM
            self._spec.populate_fields = (
                dict(fields) if isinstance(fields, Mapping) else list(fields)
            )
        else:
            self._spec.populate_mode = PopulateMode.ALL
            self._spec.populate_fields = []
        return self

    def no_populate(self) -> CollectionQuery:
        self._spec.populate_mode = PopulateMode.NONE
        self._spec.populate_fields = []
        return self

    def deep(self, depth: int = 10) -> CollectionQuery:
        """Populate everything through the populate-deep plugin, *depth* levels down."""
        self._spec.deep = int(depth)
        self._spec.populate_mode = PopulateMode.ALL
        self._spec.populate_fields = []
        return self

    def flatten(self, enabled: bool = True) -> CollectionQuery:
        self._spec.flatten = enabled
        return self

    def absolute(self, enabled: bool = True) -> CollectionQuery:
        self._spec.absolute_url = enabled
        return self

    def squash(self, enabled: bool = True) -> CollectionQuery:
        self._spec.squash_image = enabled
        return self

    def drafts(self, enabled: bool = True) -> CollectionQuery:
        """Include unpublished entries."""
        self._spec.include_drafts = enabled
        return self

    def set_options(self, **options: Any) -> CollectionQuery:
        """Set several spec attributes at once; unknown names are ignored."""
        for key, value in options.items():
            if key not in self._OPTIONS:
                continue
            if key == "sort_order":
                value = _coerce_order(value)
            setattr(self._spec, key, value)
        return self

    def field(self, name: str) -> FieldFilter:
        """The filter for field *name* (dot paths address relations)."""
        return self._filters.field(name)

    def clear_all_filters(self) -> CollectionQuery:
        self._filters.clear()
        return self

    def copy(self) -> CollectionQuery:
        """An independent query with the same configuration and filters."""
        clone = CollectionQuery(self._client, self._spec.collection)
        clone._spec = copy.deepcopy(self._spec)
        clone._filters = self._filters.copy()
        return clone

    # ------------------------------------------------------------------ #
    # Execution
    # ------------------------------------------------------------------ #

    def url(self) -> str:
        """The request URL the next :meth:`query` will fetch."""
        return self._build_url(self._spec.collection)

    def query(self, use_cache: bool = True) -> Any:
        """Fetch, normalise and return the configured page of the collection.

        Returns:
            A list of records, or a single record for single types.

        Raises:
            UnknownError: If Strapi returns an empty body.
        """
        data, _ = self._execute(self._spec.collection, use_cache)
        return data

    def find_one(self, use_cache: bool = True) -> Optional[Record]:
        """Fetch only the first matching record.

        The record is also indexed as an item under its ``id`` (or a hash
        of the result), pointing at the response it came from, so that
        :meth:`clear_item_cache` can evict it.
        """
        previous_limit = self._spec.limit
        self._spec.limit = 1
        try:
            results, url = self._execute(self._spec.collection, use_cache)
        finally:
            self._spec.limit = previous_limit

        item = _first(results)
        if item is not None and use_cache:
            self._record_item(_item_id(item, results), url)
        return item

    def find_one_by_id(self, item_id: Any, use_cache: bool = True) -> Optional[Record]:
        """Fetch a record by id, or ``None`` if it cannot be found.

        ``GET /<type>/<id>`` is tried first; if that fails for any reason
        an ``id`` equality filter query is tried.  Configured filters are
        set aside for the lookup and restored afterwards.  A network
        failure and a missing record both return ``None``.
        """
        saved = self._filters.snapshot()
        self._filters.clear()
        try:
            try:
                record, url = self._get_custom(f"/{item_id}", use_cache)
            except StrapiError as exc:
                logger.debug(
                    "Direct lookup of %s/%s failed (%s), trying an id filter",
                    self.collection_type, item_id, exc,
                )
            else:
                if record and use_cache:
                    self._record_item(item_id, url)
                return record

            try:
                self.field("id").filter(item_id, FilterOperator.EQ)
                return self.find_one(use_cache)
            except StrapiError as exc:
                logger.debug("Lookup of %s/%s failed: %s", self.collection_type, item_id, exc)
                return None
        finally:
            self._filters.restore(saved)

    def get_custom(self, path: str, use_cache: bool = True) -> Any:
        """Query ``<type><path>`` instead of the collection itself.

        A single-element result is unwrapped.  The URL is still indexed
        under this collection type.
        """
        results, _ = self._get_custom(path, use_cache)
        return results

    # ------------------------------------------------------------------ #
    # Cache invalidation
    # ------------------------------------------------------------------ #

    def clear_collection_cache(self, including_items: bool = False) -> int:
        """Evict every cached page of this collection (and its items if asked)."""
        return self._client.index.clear(self.collection_type, including_items)

    def clear_item_cache(self, item_id: Any) -> bool:
        """Evict the response :meth:`find_one` or :meth:`find_one_by_id` served *item_id* from."""
        return self._client.index.clear_item(self.collection_type, item_id)

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def post(self, fields: Mapping[str, Any]) -> httpx.Response:
        """Create an entry."""
        return self._client.post(self.collection_type, dict(fields))

    def put(self, item_id: Any, fields: Mapping[str, Any]) -> httpx.Response:
        """Update entry *item_id*."""
        return self._client.put(f"{self.collection_type}/{item_id}", dict(fields))

    def delete(self, item_id: Any) -> httpx.Response:
        return self._client.delete(f"{self.collection_type}/{item_id}")

    def post_files(
        self,
        fields: Mapping[str, Any],
        files: Mapping[str, FileInput],
    ) -> httpx.Response:
        """Create an entry together with uploaded files.

        Args:
            fields: Entry attributes, sent as the JSON ``data`` part.
            files: Media field name to a path, or to a mapping with
                ``path`` and an optional ``name`` (the upload file name).
                The key ``"files"`` uploads without attaching to a field.
        """
        with ExitStack() as stack:
            parts = []
            for field_name, file in files.items():
                if isinstance(file, Mapping):
                    path = Path(file["path"])
                    filename = file.get("name") or path.name
                else:
                    path = Path(file)
                    filename = path.name
                part_name = "files" if field_name == "files" else f"files.{field_name}"
                handle = stack.enter_context(path.open("rb"))
                parts.append((part_name, (filename, handle)))

            return self._client.post_multipart(
                self.collection_type,
                {"data": json.dumps(dict(fields))},
                parts,
            )

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _build_url(self, collection: str) -> str:
        spec = self._spec
        dialect = self._client.dialect
        extra = [dialect.render_populate(spec.populate_mode, spec.populate_fields, spec.deep)]
        if spec.include_drafts:
            extra.append(dialect.render_drafts())
        extra.append(self._filters.url(dialect))
        return build_query_url(
            self._client.config.url,
            dialect,
            collection,
            spec.sort_by,
            spec.sort_order,
            spec.limit,
            spec.page,
            extra,
        )

    def _execute(self, collection: str, use_cache: bool) -> tuple[Any, str]:
        url = self._build_url(collection)
        payload = self._client.get_json(url, use_cache)
        if not payload:
            self._client.cache.forget(url)
            raise UnknownError(f"Strapi returned no data for {url}", context={"url": url})

        if use_cache:
            self._client.index.record(self.collection_type, url)

        config = self._client.config
        data, meta = normalize_response(
            payload,
            config.version,
            flatten=self._spec.flatten,
            absolute_url=self._spec.absolute_url,
            squash_image=self._spec.squash_image,
            upload_url=config.upload_url or "",
        )
        self._results = data
        self._meta = meta
        return data, url

    def _get_custom(self, path: str, use_cache: bool) -> tuple[Any, str]:
        results, url = self._execute(self._spec.collection + path, use_cache)
        if isinstance(results, list) and len(results) == 1:
            return results[0], url
        return results, url

    def _record_item(self, item_id: object, url: str) -> None:
        self._client.index.record_item(self.collection_type, item_id, url)

    def __repr__(self) -> str:
        return f"CollectionQuery({self.collection_type!r})"
