"""Per-version query dialects.

Strapi changed its query-string grammar between major versions.  Rather
than scattering version checks, every version-dependent rendering rule
lives on a :class:`QueryDialect` subclass selected once, when the client
is built, by :func:`get_dialect`:

- :class:`LegacyDialect` (v3) -- ``_sort``, ``_limit``, ``_start``; no
  filter or populate support.
- :class:`ModernDialect` (v4) -- ``sort``, ``pagination[...]``,
  ``filters[...]``, ``populate``, ``publicationState=preview``.
- :class:`V5Dialect` (v5) -- as v4, but drafts are requested with
  ``status=draft``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any, Optional, Union
from urllib.parse import quote_plus

from strapiq.exceptions import ConfigError
from strapiq.models import SUPPORTED_VERSIONS, PopulateMode, SortOrder

DEFAULT_RECORD_LIMIT = 100
"""Page size Strapi uses when none is given; never rendered explicitly."""

SortSpec = Union[str, Sequence[Union[str, Sequence[str]]]]


def _order_value(order: Union[SortOrder, str]) -> str:
    return order.value if isinstance(order, SortOrder) else str(order).upper()


def encode_value(value: Any) -> str:
    """URL-encode a filter or populate value the way form posts do (space -> ``+``)."""
    if isinstance(value, bool):
        value = "true" if value else "false"
    return quote_plus(str(value))


class QueryDialect(ABC):
    """Rendering rules for one Strapi major version."""

    version: int
    sort_key: str = "sort"

    @property
    @abstractmethod
    def supports_filters(self) -> bool:
        """Whether ``filters[...]`` parameters are understood by this version."""
        ...

    def render_sort(self, sort_by: Optional[SortSpec], default_order: Union[SortOrder, str]) -> str:
        """Render the sort clause.

        A single field renders as ``sort=field:ORDER``; a sequence renders
        indexed entries ``sort[0]=f1:O1&sort[1]=f2:O2`` where each entry is
        a bare field (default order) or a ``(field, order)`` pair.
        """
        if not sort_by:
            return ""
        order = _order_value(default_order)
        if isinstance(sort_by, str):
            return f"{self.sort_key}={sort_by}:{order}"

        parts = []
        for index, entry in enumerate(sort_by):
            if isinstance(entry, str):
                field, entry_order = entry, order
            else:
                field = entry[0]
                entry_order = _order_value(entry[1]) if len(entry) > 1 and entry[1] else order
            parts.append(f"{self.sort_key}[{index}]={field}:{entry_order}")
        return "&".join(parts)

    @abstractmethod
    def render_pagination(self, limit: int, page: int) -> list[str]:
        """Return the pagination parameters, omitting default values."""
        ...

    def render_filter(self, field_name: str, operator: str, value: Any) -> str:
        """Render one ``filters[...]`` parameter, dot paths becoming nested brackets."""
        if not self.supports_filters:
            return ""
        path = "][".join(field_name.split("."))
        return f"filters[{path}][{operator}]={encode_value(value)}"

    @abstractmethod
    def render_populate(
        self,
        mode: PopulateMode,
        fields: Union[Sequence[str], Mapping[str, Any], None] = None,
        deep: int = 0,
    ) -> str:
        """Return the populate clause, or ``""`` when nothing is populated."""
        ...

    @abstractmethod
    def render_drafts(self) -> str:
        """Return the parameter that includes unpublished entries."""
        ...

    def wrap_payload(self, payload: Any) -> Any:
        """Shape a write body; v4 and later expect a ``{"data": ...}`` envelope."""
        return {"data": payload}


class LegacyDialect(QueryDialect):
    """Strapi v3: underscore-prefixed parameters and no filter support."""

    version = 3
    sort_key = "_sort"

    @property
    def supports_filters(self) -> bool:
        return False

    def render_pagination(self, limit: int, page: int) -> list[str]:
        params = []
        if limit != DEFAULT_RECORD_LIMIT:
            params.append(f"_limit={limit}")
        start = max(page - 1, 0) * limit
        if start:
            params.append(f"_start={start}")
        return params

    def render_populate(self, mode, fields=None, deep=0) -> str:
        # v3 populates first-level relations on its own.
        return ""

    def render_drafts(self) -> str:
        return "_publicationState=preview"

    def wrap_payload(self, payload: Any) -> Any:
        return payload


class ModernDialect(QueryDialect):
    """Strapi v4: bracketed ``pagination``, ``filters`` and ``populate``."""

    version = 4

    @property
    def supports_filters(self) -> bool:
        return True

    def render_pagination(self, limit: int, page: int) -> list[str]:
        params = []
        if limit != DEFAULT_RECORD_LIMIT:
            params.append(f"pagination[pageSize]={limit}")
        if page != 1:
            params.append(f"pagination[page]={page}")
        return params

    def render_populate(self, mode, fields=None, deep=0) -> str:
        if mode == PopulateMode.NONE:
            return ""
        if mode == PopulateMode.ALL or not fields:
            if deep > 0:
                return f"populate=deep,{deep}"
            return "populate=*"

        if isinstance(fields, Mapping):
            items = list(fields.items())
        else:
            items = [(name, "*") for name in fields]
        return "&".join(
            f"populate[{name}][populate]={value}" for name, value in items
        )

    def render_drafts(self) -> str:
        return "publicationState=preview"


class V5Dialect(ModernDialect):
    """Strapi v5: v4 grammar with the ``status`` draft parameter."""

    version = 5

    def render_drafts(self) -> str:
        return "status=draft"


_DIALECTS: dict[int, type[QueryDialect]] = {
    3: LegacyDialect,
    4: ModernDialect,
    5: V5Dialect,
}


def get_dialect(version: int) -> QueryDialect:
    """Return the dialect for a Strapi major version.

    Raises:
        ConfigError: If *version* is not one of :data:`~strapiq.models.SUPPORTED_VERSIONS`.
    """
    dialect_cls = _DIALECTS.get(version)
    if dialect_cls is None:
        supported = ", ".join(str(v) for v in SUPPORTED_VERSIONS)
        raise ConfigError(
            f"API version {version} is not supported. Supported versions: {supported}"
        )
    return dialect_cls()
