"""Field filters and their ``filters[...]`` rendering.

A :class:`FilterSet` belongs to one :class:`~strapiq.collection.CollectionQuery`
and holds a :class:`FieldFilter` per field name.  Each field filter maps an
operator token (``$eq``, ``$contains``, ...) to a value; setting the same
operator again replaces the value.

OR / AND groups are expressed with synthetic field names that Strapi's
query parser turns back into arrays::

    $or.0.slug   ->  filters[$or][0][slug][$eq]=a
    $or.1.slug   ->  filters[$or][1][slug][$eq]=b

The field that created a group remembers the synthetic names as *linked*
filters, so :meth:`FieldFilter.clear_filters` on it clears the whole group.

Example::

    filters = FilterSet()
    filters.field("author.name").filter("John")
    filters.field("slug").value_or(["a", "b"])
    filters.url(ModernDialect())
"""

from __future__ import annotations

import copy
import warnings
import weakref
from collections.abc import Iterable, Sequence
from typing import Any, Optional

from strapiq.dialect import QueryDialect


class FilterOperator:
    """Strapi filter operator tokens.  Any other string is rendered verbatim."""

    EQ = "$eq"
    EQI = "$eqi"
    NE = "$ne"
    NEI = "$nei"
    LT = "$lt"
    LTE = "$lte"
    GT = "$gt"
    GTE = "$gte"
    IN = "$in"
    NOT_IN = "$notIn"
    CONTAINS = "$contains"
    NOT_CONTAINS = "$notContains"
    CONTAINSI = "$containsi"
    NOT_CONTAINSI = "$notContainsi"
    NULL = "$null"
    NOT_NULL = "$notNull"
    BETWEEN = "$between"
    STARTS_WITH = "$startsWith"
    ENDS_WITH = "$endsWith"

    # Readable aliases
    EQUALS = EQ
    NOT_EQUALS = NE


class FieldFilter:
    """Filter predicates for a single field (or dot path) of a collection.

    Args:
        name: Field name; dots address nested relations
            (``author.name``).
        filter_set: The owning :class:`FilterSet`, held weakly.
    """

    def __init__(self, name: str, filter_set: FilterSet) -> None:
        self.name = name
        self._filter_set = weakref.ref(filter_set)
        self._filters: dict[str, Any] = {}
        self._linked: list[str] = []

    @property
    def filters(self) -> dict[str, Any]:
        """A copy of the active ``operator -> value`` mapping."""
        return dict(self._filters)

    @property
    def linked(self) -> list[str]:
        """Synthetic field names created by OR / AND helpers on this field."""
        return list(self._linked)

    @property
    def is_active(self) -> bool:
        return bool(self._filters)

    def filter(self, value: Any, operator: str = FilterOperator.EQ) -> FieldFilter:
        """Set the value compared with *operator*; the last value per operator wins."""
        self._filters[operator] = value
        return self

    def clear_filter(self, operator: str) -> FieldFilter:
        self._filters.pop(operator, None)
        return self

    def clear_filters(self) -> FieldFilter:
        """Clear every operator on this field and on all linked synthetic fields."""
        self._filters = {}
        owner = self._owner()
        for name in self._linked:
            owner.field(name).clear_filters()
        return self

    def value_or(self, values: Iterable[Any], operator: str = FilterOperator.EQ) -> FieldFilter:
        """Match this field against any of *values*.

        Example::

            query.field("slug").value_or(["intro", "intro-2"])
        """
        owner = self._owner()
        for index, value in enumerate(values):
            name = f"$or.{index}.{self.name}"
            owner.field(name).filter(value, operator)
            self._link(name)
        return self

    def value_in(
        self,
        value: Any,
        other_fields: Sequence[str],
        operator: str = FilterOperator.EQ,
    ) -> FieldFilter:
        """Match *value* against this field or any of *other_fields*.

        Example::

            query.field("title").value_in("intro", ["slug"])
        """
        self._multi_filter("$or.", value, operator, [self.name, *other_fields])
        return self

    def or_(
        self,
        value: Any,
        operator: str = FilterOperator.EQ,
        fields: Sequence[str] = (),
    ) -> FieldFilter:
        """Deprecated: use :meth:`value_in`."""
        warnings.warn(
            "FieldFilter.or_() is deprecated, use value_in()",
            DeprecationWarning,
            stacklevel=2,
        )
        self._multi_filter("$or.", value, operator, [self.name, *fields])
        return self

    def and_(
        self,
        value: Any,
        operator: str = FilterOperator.EQ,
        fields: Sequence[str] = (),
    ) -> FieldFilter:
        """Deprecated: require *value* on this field and every one of *fields*."""
        warnings.warn(
            "FieldFilter.and_() is deprecated and will be reworked",
            DeprecationWarning,
            stacklevel=2,
        )
        self._multi_filter("$and.", value, operator, [self.name, *fields])
        return self

    def url(self, dialect: QueryDialect) -> str:
        """Render the active filters, or ``""`` on a dialect without filter support."""
        if not dialect.supports_filters:
            return ""
        return "&".join(
            dialect.render_filter(self.name, operator, value)
            for operator, value in self._filters.items()
        )

    def _multi_filter(self, prefix: str, value: Any, operator: str, fields: list[str]) -> None:
        owner = self._owner()
        for index, field in enumerate(fields):
            name = f"{prefix}{index}.{field}"
            owner.field(name).filter(value, operator)
            self._link(name)

    def _link(self, name: str) -> None:
        if name not in self._linked:
            self._linked.append(name)

    def _owner(self) -> FilterSet:
        owner = self._filter_set()
        if owner is None:
            raise RuntimeError(f"Filter set for field '{self.name}' no longer exists")
        return owner

    def __repr__(self) -> str:
        return f"FieldFilter({self.name!r}, {self._filters!r})"


class FilterSet:
    """All field filters of one query, keyed by field name."""

    def __init__(self) -> None:
        self._fields: dict[str, FieldFilter] = {}

    def field(self, name: str) -> FieldFilter:
        """Return the filter for *name*, creating it on first use."""
        if name not in self._fields:
            self._fields[name] = FieldFilter(name, self)
        return self._fields[name]

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    def __len__(self) -> int:
        return sum(1 for f in self._fields.values() if f.is_active)

    def names(self) -> list[str]:
        return list(self._fields)

    def url(self, dialect: QueryDialect) -> str:
        """Render every active field filter joined with ``&``."""
        parts = [f.url(dialect) for f in self._fields.values()]
        return "&".join(p for p in parts if p)

    def clear(self) -> None:
        self._fields = {}

    def snapshot(self) -> dict[str, tuple[dict[str, Any], list[str]]]:
        """Capture the current filters so they can be put back with :meth:`restore`."""
        return {
            name: (copy.deepcopy(f._filters), list(f._linked))
            for name, f in self._fields.items()
        }

    def restore(self, snapshot: dict[str, tuple[dict[str, Any], list[str]]]) -> None:
        self._fields = {}
        for name, (filters, linked) in snapshot.items():
            restored = self.field(name)
            restored._filters = copy.deepcopy(filters)
            restored._linked = list(linked)

    def copy(self) -> FilterSet:
        """Return an independent filter set with the same filters."""
        clone = FilterSet()
        clone.restore(self.snapshot())
        return clone

    def get(self, name: str) -> Optional[FieldFilter]:
        return self._fields.get(name)
