"""Tests for field filters and filter sets."""

from __future__ import annotations

import pytest

from strapiq.dialect import LegacyDialect, ModernDialect
from strapiq.filters import FilterOperator, FilterSet


@pytest.fixture()
def filters() -> FilterSet:
    return FilterSet()


class TestFieldFilter:
    def test_default_operator_is_eq(self, filters: FilterSet) -> None:
        filters.field("slug").filter("hello")
        assert filters.url(ModernDialect()) == "filters[slug][$eq]=hello"

    def test_last_value_per_operator_wins(self, filters: FilterSet) -> None:
        field = filters.field("views").filter(5, FilterOperator.GT).filter(10, FilterOperator.GT)
        assert field.filters == {"$gt": 10}

    def test_several_operators(self, filters: FilterSet) -> None:
        filters.field("views").filter(5, FilterOperator.GT).filter(10, FilterOperator.LTE)
        assert filters.url(ModernDialect()) == (
            "filters[views][$gt]=5&filters[views][$lte]=10"
        )

    def test_clear_filter(self, filters: FilterSet) -> None:
        field = filters.field("views").filter(5, "$gt").filter(10, "$lt")
        field.clear_filter("$gt")
        assert field.filters == {"$lt": 10}

    def test_legacy_dialect_renders_nothing(self, filters: FilterSet) -> None:
        filters.field("author.name").filter("John", "equals")
        assert filters.url(LegacyDialect()) == ""

    def test_nested_field_path(self, filters: FilterSet) -> None:
        filters.field("author.name").filter("John", "equals")
        assert filters.url(ModernDialect()) == "filters[author][name][equals]=John"


class TestLinkedFilters:
    def test_value_or(self, filters: FilterSet) -> None:
        filters.field("slug").value_or(["a", "b"], "equals")
        assert filters.url(ModernDialect()) == (
            "filters[$or][0][slug][equals]=a&filters[$or][1][slug][equals]=b"
        )

    def test_clear_filters_clears_group(self, filters: FilterSet) -> None:
        slug = filters.field("slug").value_or(["a", "b"], "equals")
        assert slug.linked == ["$or.0.slug", "$or.1.slug"]
        slug.clear_filters()
        assert filters.url(ModernDialect()) == ""
        assert len(filters) == 0

    def test_value_in(self, filters: FilterSet) -> None:
        filters.field("title").value_in("intro", ["slug"], FilterOperator.CONTAINS)
        assert filters.url(ModernDialect()) == (
            "filters[$or][0][title][$contains]=intro&filters[$or][1][slug][$contains]=intro"
        )

    def test_deprecated_or(self, filters: FilterSet) -> None:
        with pytest.warns(DeprecationWarning):
            filters.field("title").or_("x", FilterOperator.EQ, ["slug"])
        assert "$or.1.slug" in filters

    def test_deprecated_and(self, filters: FilterSet) -> None:
        with pytest.warns(DeprecationWarning):
            filters.field("title").and_("x", FilterOperator.EQ, ["slug"])
        assert filters.url(ModernDialect()) == (
            "filters[$and][0][title][$eq]=x&filters[$and][1][slug][$eq]=x"
        )


class TestFilterSet:
    def test_snapshot_and_restore(self, filters: FilterSet) -> None:
        filters.field("slug").value_or(["a", "b"])
        saved = filters.snapshot()
        filters.clear()
        filters.field("id").filter(3)
        filters.restore(saved)
        assert "id" not in filters
        assert filters.field("slug").linked == ["$or.0.slug", "$or.1.slug"]
        assert len(filters) == 2

    def test_copy_is_independent(self, filters: FilterSet) -> None:
        filters.field("slug").filter("a")
        clone = filters.copy()
        clone.field("slug").filter("b")
        assert filters.field("slug").filters == {"$eq": "a"}
        assert clone.field("slug").filters == {"$eq": "b"}

    def test_inactive_fields_not_counted(self, filters: FilterSet) -> None:
        filters.field("slug")
        assert len(filters) == 0
        assert filters.names() == ["slug"]
