"""Tag list canonicalization and tag-cell parsing."""
import json
from typing import Any, Iterable, List, Optional, Union

MAX_TAGS = 8


def normalize_tags(tags: Optional[Iterable[Any]], max_tags: int = MAX_TAGS) -> List[str]:
    """
    Lowercase, trim and dedupe a tag list, keeping first-seen order.

    Scanning stops once `max_tags` unique tags are collected, so input order
    decides which tags survive the cap.
    """
    seen = {}
    for tag in tags or []:
        if tag is None:
            continue
        value = str(tag).lower().strip()
        if value:
            seen[value] = None
        if len(seen) >= max_tags:
            break
    return list(seen)


def split_tags_cell(cell: Union[str, List[Any], None]) -> List[str]:
    """
    Split a tag cell into raw entries without normalizing them.

    Accepts a list, a JSON-encoded array string, or a string delimited by
    `|` (preferred when present) or `,`.
    """
    if cell is None:
        return []
    if isinstance(cell, (list, tuple)):
        return [_cell_text(item) for item in cell if item is not None]

    trimmed = str(cell).strip()
    if not trimmed:
        return []

    if trimmed.startswith("[") and trimmed.endswith("]"):
        try:
            parsed = json.loads(trimmed)
        except ValueError:
            parsed = None
        if isinstance(parsed, list):
            return [_cell_text(item) for item in parsed]

    sep = "|" if "|" in trimmed else ","
    return trimmed.split(sep)


def _cell_text(item: Any) -> str:
    return item if isinstance(item, str) else json.dumps(item)


def parse_tags_cell(cell: Union[str, List[Any], None], max_tags: int = MAX_TAGS) -> List[str]:
    """Parse a spreadsheet/paste tag cell into a normalized tag list. Never raises."""
    return normalize_tags(split_tags_cell(cell), max_tags=max_tags)
