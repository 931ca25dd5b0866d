"""
Operation engine: compute the field patch one bulk operation makes to a document.

Operations use their wire shape:

    {"type": "description_find_replace",
     "payload": {"find": "Imported", "replace": "Fresh", "regex": False, "caseInsensitive": True}}

apply_operation() is total over the operation types below: unknown types and
missing payloads give an empty patch, and a bad user regex leaves the text as-is.
"""
import re
from typing import Any, Dict, Mapping, Optional

from batchops.tags import MAX_TAGS, normalize_tags
from tools.logging_utils import get_logger

logger = get_logger(__name__)

OPERATION_TYPES = (
    "description_set",
    "description_find_replace",
    "tags_add",
    "tags_remove",
    "tags_replace",
)


def find_replace(
    text: str,
    find: str,
    replace: Optional[str] = None,
    regex: bool = False,
    case_insensitive: bool = False,
) -> str:
    """
    Replace every occurrence of `find` in `text`.

    regex=True compiles `find` as a pattern (Python `re` syntax, `\\1` group
    references). An invalid pattern or replacement template returns `text`
    unchanged. Literal mode never interprets special characters.
    """
    replace_with = replace if replace is not None else ""

    if regex:
        flags = re.IGNORECASE if case_insensitive else 0
        try:
            return re.compile(find, flags).sub(replace_with, text)
        except re.error as e:
            logger.warning(f"⚠️ Ignoring invalid find/replace pattern {find!r}: {e}")
            return text

    if case_insensitive:
        pattern = re.compile(re.escape(find), re.IGNORECASE)
        return pattern.sub(lambda _match: replace_with, text)

    return text.replace(find, replace_with)


def apply_operation(
    current: Mapping[str, Any],
    op: Mapping[str, Any],
    max_tags: int = MAX_TAGS,
) -> Dict[str, Any]:
    """
    Compute the proposed patch for `current` ({description, tags}).

    Returns only the fields the operation touches; {} means no change.
    """
    op_type = op.get("type")
    payload = op.get("payload") or {}

    if op_type == "description_set":
        new_text = payload.get("newText")
        if new_text is None:
            return {}
        return {"description": new_text}

    if op_type == "description_find_replace":
        find = payload.get("find")
        if not find:
            return {}
        return {
            "description": find_replace(
                current.get("description") or "",
                find,
                payload.get("replace"),
                regex=bool(payload.get("regex")),
                case_insensitive=bool(payload.get("caseInsensitive")),
            )
        }

    if op_type == "tags_add":
        add = normalize_tags(payload.get("add") or [], max_tags)
        existing = normalize_tags(current.get("tags") or [], max_tags)
        return {"tags": normalize_tags(existing + add, max_tags)}

    if op_type == "tags_remove":
        remove = set(normalize_tags(payload.get("remove") or [], max_tags))
        existing = normalize_tags(current.get("tags") or [], max_tags)
        return {"tags": [t for t in existing if t not in remove]}

    if op_type == "tags_replace":
        return {"tags": normalize_tags(payload.get("newTags") or [], max_tags)}

    return {}
