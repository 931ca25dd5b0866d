"""
Filter Builder Tests
====================

Native where clauses, post-fetch matching, and validation of filter specs.
"""

import pytest

from batchops.errors import BatchValidationError
from batchops.filters import build_query, is_native, matches_filter, native_where, validate_filters


class TestNativeWhere:

    @pytest.mark.readonly
    @pytest.mark.parametrize("filters,expected", [
        ({"field": "description", "mode": "exact", "value": "Gin"}, [("description", "==", "Gin")]),
        ({"field": "description", "mode": "empty"}, [("description", "==", "")]),
        ({"field": "description", "mode": "missing"}, [("description", "==", None)]),
        ({"field": "tags", "mode": "tags_any", "value": "Stale|Herb"},
         [("tags", "array-contains-any", ["Stale", "stale", "Herb", "herb"])]),
        ({"field": "description", "mode": "contains", "value": "lime"}, []),
        ({"field": "tags", "mode": "tags_all", "value": ["a"]}, []),
    ])
    def test_translation(self, filters, expected):
        assert native_where(filters) == expected

    @pytest.mark.readonly
    def test_is_native(self):
        assert is_native({"field": "description", "mode": "exact"})
        assert is_native({"field": "tags", "mode": "tags_any"})
        assert not is_native({"field": "description", "mode": "regex"})
        assert not is_native({"field": "tags", "mode": "tags_all"})


class TestMatchesFilter:

    @pytest.mark.readonly
    def test_contains_is_case_insensitive(self):
        doc = {"description": "Fresh MINT leaves"}
        assert matches_filter(doc, {"field": "description", "mode": "contains", "value": "mint"})
        assert matches_filter(doc, {"field": "description", "mode": "icontains", "value": "Mint"})
        assert not matches_filter(doc, {"field": "description", "mode": "contains", "value": "basil"})

    @pytest.mark.readonly
    def test_contains_empty_value_matches_everything(self):
        assert matches_filter({}, {"field": "description", "mode": "contains", "value": ""})

    @pytest.mark.readonly
    def test_iexact(self):
        doc = {"description": "Gin and lime"}
        assert matches_filter(doc, {"field": "description", "mode": "iexact", "value": "GIN AND LIME"})
        assert not matches_filter(doc, {"field": "description", "mode": "iexact", "value": "gin"})

    @pytest.mark.readonly
    def test_regex(self):
        doc = {"description": "Imported ingredient: lime"}
        assert matches_filter(doc, {"field": "description", "mode": "regex", "value": r"^Imported"})
        assert not matches_filter(doc, {"field": "description", "mode": "regex", "value": r"^lime"})

    @pytest.mark.readonly
    def test_regex_invalid_pattern_matches_nothing(self):
        assert not matches_filter({"description": "x"}, {"field": "description", "mode": "regex", "value": "("})

    @pytest.mark.readonly
    def test_empty_vs_missing(self):
        empty, absent = {"description": ""}, {"name": "Rum"}
        assert matches_filter(empty, {"field": "description", "mode": "empty"})
        assert not matches_filter(absent, {"field": "description", "mode": "empty"})
        assert matches_filter(absent, {"field": "description", "mode": "missing"})
        assert not matches_filter(empty, {"field": "description", "mode": "missing"})

    @pytest.mark.readonly
    def test_tags_any_and_all(self):
        doc = {"tags": ["Classic", "sour"]}
        assert matches_filter(doc, {"field": "tags", "mode": "tags_any", "value": ["classic", "tiki"]})
        assert not matches_filter(doc, {"field": "tags", "mode": "tags_all", "value": ["classic", "tiki"]})
        assert matches_filter(doc, {"field": "tags", "mode": "tags_all", "value": "CLASSIC|Sour"})


class TestValidateFilters:

    @pytest.mark.readonly
    @pytest.mark.parametrize("filters", [
        {"field": "name", "mode": "exact", "value": "x"},
        {"field": "description", "mode": "tags_any", "value": ["x"]},
        {"field": "tags", "mode": "contains", "value": "x"},
        {"field": "description", "mode": "exact"},
        {"field": "description", "mode": "regex", "value": "(unclosed"},
        {"field": "tags", "mode": "tags_any", "value": []},
        {"field": "tags", "mode": "tags_all", "value": " | "},
        {"field": "description", "mode": "empty", "limit": 0},
        {"field": "description", "mode": "empty", "limit": "10"},
    ])
    def test_rejects(self, filters):
        with pytest.raises(BatchValidationError):
            validate_filters(filters)

    @pytest.mark.readonly
    @pytest.mark.parametrize("filters", [
        {"field": "description", "mode": "exact", "value": ""},
        {"field": "description", "mode": "contains"},
        {"field": "description", "mode": "missing", "limit": 5},
        {"field": "tags", "mode": "tags_any", "value": "stale"},
    ])
    def test_accepts(self, filters):
        validate_filters(filters)


class TestBuildQuery:

    @pytest.mark.readonly
    def test_tags_any_query(self, store):
        snaps = build_query(store, "ingredients", {"field": "tags", "mode": "tags_any", "value": ["stale"]})
        assert {s.id for s in snaps} == {"ing-lime", "ing-gin"}

    @pytest.mark.readonly
    def test_missing_query_matches_absent_field(self, store):
        snaps = build_query(store, "ingredients", {"field": "description", "mode": "missing"})
        assert [s.id for s in snaps] == ["ing-rum"]

    @pytest.mark.readonly
    def test_limit_bounds_native_query(self, store):
        snaps = build_query(store, "ingredients", {"field": "description", "mode": "contains", "limit": 2})
        assert len(snaps) == 2
