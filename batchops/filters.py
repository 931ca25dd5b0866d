"""
Query/filter builder.

Filter specs have the wire shape {"field", "mode", "value", "limit"}. Only some
modes map onto a native store query; the rest are evaluated on the fetched
documents with matches_filter():

    field        mode        native query                  after fetch
    description  exact       description == value          -
    description  empty       description == ""             -
    description  missing     description == None           -
    description  contains    (none)                        case-insensitive substring
    description  icontains   (none)                        case-insensitive substring
    description  iexact      (none)                        case-insensitive equality
    description  regex       (none)                        re.search
    tags         tags_any    tags array-contains-any value -
    tags         tags_all    (none)                        every value present

`limit` bounds the native query only. tags_any sends each value both as
written and lowercased, since stored tags are matched exactly.
"""
import re
from typing import Any, Dict, List, Mapping

from batchops.errors import BatchValidationError
from batchops.tags import split_tags_cell

DESCRIPTION_MODES = ("exact", "iexact", "contains", "icontains", "regex", "empty", "missing")
TAG_MODES = ("tags_any", "tags_all")

FIELD_MODES = {
    "description": DESCRIPTION_MODES,
    "tags": TAG_MODES,
}

NATIVE_MODES = {
    ("description", "exact"),
    ("description", "empty"),
    ("description", "missing"),
    ("tags", "tags_any"),
}

# Modes whose value must be a string
_TEXT_VALUE_MODES = ("exact", "iexact", "regex")


def filter_tag_values(value: Any) -> List[str]:
    """Lowercased, deduped tag values for a tag filter (list or delimited string)."""
    seen = {}
    for item in split_tags_cell(value):
        tag = str(item).strip().lower()
        if tag:
            seen[tag] = None
    return list(seen)


def native_tag_values(value: Any) -> List[str]:
    """
    Values for the native array-contains-any clause.

    Stored tags are matched exactly and are not guaranteed to be normalized,
    so each value is sent as the caller wrote it (trimmed) and lowercased.
    """
    seen = {}
    for item in split_tags_cell(value):
        tag = str(item).strip()
        if tag:
            seen[tag] = None
            seen[tag.lower()] = None
    return list(seen)


def validate_filters(filters: Mapping[str, Any]) -> None:
    """
    Check the field/mode vocabulary and the value each mode needs.

    Raises:
        BatchValidationError: On an unknown field or mode, a missing value, or
            an invalid regex
    """
    field = filters.get("field")
    mode = filters.get("mode")
    value = filters.get("value")

    if field not in FIELD_MODES:
        raise BatchValidationError(f"Unsupported filter field '{field}'")
    if mode not in FIELD_MODES[field]:
        raise BatchValidationError(
            f"Unsupported mode '{mode}' for field '{field}' (expected one of {', '.join(FIELD_MODES[field])})"
        )

    if mode in _TEXT_VALUE_MODES and not isinstance(value, str):
        raise BatchValidationError(f"Filter mode '{mode}' needs a string value")
    if mode in ("contains", "icontains") and value is not None and not isinstance(value, str):
        raise BatchValidationError(f"Filter mode '{mode}' needs a string value")
    if mode == "regex":
        try:
            re.compile(value)
        except re.error as e:
            raise BatchValidationError(f"Invalid filter regex: {e}") from e
    if field == "tags" and not filter_tag_values(value):
        raise BatchValidationError(f"Filter mode '{mode}' needs at least one tag")

    limit = filters.get("limit")
    if limit is not None and (not isinstance(limit, int) or isinstance(limit, bool) or limit < 1):
        raise BatchValidationError("Filter limit must be a positive integer")


def is_native(filters: Mapping[str, Any]) -> bool:
    """True when the store query alone applies the filter."""
    return (filters.get("field"), filters.get("mode")) in NATIVE_MODES


def native_where(filters: Mapping[str, Any]) -> List[tuple]:
    """Translate a filter spec into store where clauses (empty for post-fetch modes)."""
    field = filters.get("field")
    mode = filters.get("mode")

    if field == "description":
        if mode == "exact":
            return [("description", "==", filters.get("value"))]
        if mode == "empty":
            return [("description", "==", "")]
        if mode == "missing":
            return [("description", "==", None)]
    if field == "tags" and mode == "tags_any":
        return [("tags", "array-contains-any", native_tag_values(filters.get("value")))]
    return []


def build_query(store, collection: str, filters: Mapping[str, Any]):
    """Run the native part of a filter and return the raw snapshots."""
    return store.query(
        collection,
        where=native_where(filters),
        limit=filters.get("limit") or None,
    )


def matches_filter(document: Mapping[str, Any], filters: Mapping[str, Any]) -> bool:
    """Evaluate a filter spec against a document already in hand."""
    field = filters.get("field")
    mode = filters.get("mode")
    value = filters.get("value")

    if field == "description":
        description = document.get("description")
        text = description or ""
        if mode == "exact":
            return description == value
        if mode == "iexact":
            return text.lower() == str(value).lower()
        if mode in ("contains", "icontains"):
            if not value:
                return True
            return str(value).lower() in text.lower()
        if mode == "regex":
            try:
                return re.search(value, text) is not None
            except (re.error, TypeError):
                return False
        if mode == "empty":
            return description == ""
        if mode == "missing":
            return description is None
        return True

    if field == "tags":
        doc_tags = {str(t).strip().lower() for t in document.get("tags") or [] if t is not None}
        wanted = filter_tag_values(value)
        if mode == "tags_any":
            return any(t in doc_tags for t in wanted)
        if mode == "tags_all":
            return all(t in doc_tags for t in wanted)
        return True

    return True


def filters_to_dict(filters: Any) -> Dict[str, Any]:
    """Accept a schema model or a plain mapping."""
    if hasattr(filters, "model_dump"):
        return filters.model_dump()
    return dict(filters)
