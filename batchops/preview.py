"""
Preview builder: the dry run behind both /preview and /commit.

For every candidate document it computes the current state, the proposed
state and whether the row is skipped. Nothing is written.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from batchops.filters import build_query, filters_to_dict, is_native, matches_filter
from batchops.operations import apply_operation
from batchops.tags import parse_tags_cell
from tools.logging_utils import get_logger

logger = get_logger(__name__)


@dataclass
class RowData:
    """One candidate document: state at preview time and state after the operation."""
    id: str
    current: Dict[str, Any]
    proposed: Dict[str, Any]
    name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "current": dict(self.current),
            "proposed": dict(self.proposed),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RowData":
        return cls(
            id=data["id"],
            name=data.get("name"),
            current=dict(data.get("current") or {}),
            proposed=dict(data.get("proposed") or {}),
        )


@dataclass
class PreviewResult:
    rows: List[RowData] = field(default_factory=list)
    skipped: int = 0
    missing: List[str] = field(default_factory=list)
    warnings: Dict[str, int] = field(default_factory=dict)


def current_state(data: Mapping[str, Any]) -> Dict[str, Any]:
    """The {description, tags} view of a stored document."""
    return {
        "description": data.get("description") or "",
        "tags": list(data.get("tags") or []),
    }


def final_state(current: Mapping[str, Any], proposed: Mapping[str, Any]) -> Dict[str, Any]:
    """Proposed values with current values filling the fields the patch leaves unset."""
    description = proposed.get("description")
    tags = proposed.get("tags")
    return {
        "description": description if description is not None else current.get("description"),
        "tags": tags if tags is not None else current.get("tags"),
    }


def should_skip(
    current: Mapping[str, Any],
    proposed: Mapping[str, Any],
    only_imported_placeholders: bool = False,
    skip_if_same: bool = True,
    placeholder_prefix: str = "Imported ingredient",
) -> bool:
    """
    Decide whether a row stays out of the commit set.

    only_imported_placeholders keeps only rows whose current description is
    empty or starts with the placeholder prefix. skip_if_same drops rows the
    operation would not change.
    """
    description = current.get("description") or ""
    if only_imported_placeholders and description and not description.startswith(placeholder_prefix):
        return True
    if skip_if_same and final_state(current, proposed) == dict(current):
        return True
    return False


def build_preview(store, body, batch_config: Optional[Dict[str, Any]] = None) -> PreviewResult:
    """
    Compute the preview for a validated query or paste request.

    Query mode runs the native query and then applies the remaining filter
    modes to each fetched document; documents failing them are dropped, not
    counted as skipped. Paste mode dedupes rows by id (last one wins, every
    repeat counted in warnings["duplicates"]) and reports ids with no live
    document in `missing`.

    The returned rows are capped at preview_row_cap after skip filtering;
    `skipped` and `missing` cover the whole candidate set.
    """
    if batch_config is None:
        from config import get_batch_config
        batch_config = get_batch_config()

    options = body.options
    skip_kwargs = {
        "only_imported_placeholders": options.only_imported_placeholders,
        "skip_if_same": options.skip_if_same,
        "placeholder_prefix": batch_config["placeholder_prefix"],
    }
    max_tags = batch_config["max_tags"]
    result = PreviewResult()

    if body.mode == "query":
        filters = filters_to_dict(body.filters)
        operation = body.operation_dict()
        post_filter = not is_native(filters)

        for snapshot in build_query(store, body.collection, filters):
            data = snapshot.data or {}
            if post_filter and not matches_filter(data, filters):
                continue

            current = current_state(data)
            proposed = apply_operation(current, operation, max_tags=max_tags)
            if should_skip(current, proposed, **skip_kwargs):
                result.skipped += 1
                continue
            result.rows.append(RowData(id=snapshot.id, name=data.get("name"), current=current, proposed=proposed))
    else:
        by_id = {}
        for row in body.rows:
            if row.id in by_id:
                result.warnings["duplicates"] = result.warnings.get("duplicates", 0) + 1
            by_id[row.id] = row

        for doc_id, row in by_id.items():
            data = store.get(body.collection, doc_id)
            if data is None:
                result.missing.append(doc_id)
                continue

            current = current_state(data)
            proposed = {
                "description": row.proposed.description
                if row.proposed.description is not None else current["description"],
                "tags": parse_tags_cell(row.proposed.tags, max_tags=max_tags)
                if row.proposed.tags is not None else current["tags"],
            }
            if should_skip(current, proposed, **skip_kwargs):
                result.skipped += 1
                continue
            result.rows.append(RowData(id=doc_id, name=row.name or data.get("name"), current=current, proposed=proposed))

    cap = batch_config["preview_row_cap"]
    if len(result.rows) > cap:
        logger.info(f"📊 Preview truncated from {len(result.rows)} to {cap} rows")
        result.rows = result.rows[:cap]

    logger.debug(
        f"🔍 Preview {body.mode}/{body.collection}: {len(result.rows)} rows, "
        f"{result.skipped} skipped, {len(result.missing)} missing"
    )
    return result


def preview_response(result: PreviewResult, job_id: str) -> Dict[str, Any]:
    """JSON body for POST /preview."""
    return {
        "jobId": job_id,
        "willUpdate": len(result.rows),
        "skipped": result.skipped,
        "missing": result.missing,
        "rows": [row.to_dict() for row in result.rows],
        "warnings": result.warnings,
    }
