"""
Chunked commit executor.

Rows are written in sequential groups, each group in one atomic store batch.
A failing group raises; groups committed before it stay committed and are
counted in `written`. There is no automatic compensation: recovery is an
explicit rollback job.
"""
from dataclasses import dataclass, asdict
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from batchops.preview import RowData
from tools.logging_utils import get_logger

logger = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 450

TAGS_COLLECTION = "tags"

# collection -> (link collection, document id field on each link row)
TAG_LINK_COLLECTIONS = {
    "cocktails": ("cocktail_tags", "cocktailId"),
    "ingredients": ("ingredient_tags", "ingredientId"),
}


@dataclass
class JobCounters:
    """Running counters for one job. matched is fixed when the job starts."""
    matched: int
    written: int = 0
    skipped: int = 0
    errors: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "JobCounters":
        data = data or {}
        return cls(
            matched=int(data.get("matched", 0)),
            written=int(data.get("written", 0)),
            skipped=int(data.get("skipped", 0)),
            errors=int(data.get("errors", 0)),
        )


def chunk(items: Sequence[Any], size: int) -> List[List[Any]]:
    """Split a sequence into consecutive groups of at most `size` items."""
    if size < 1:
        raise ValueError(f"chunk size must be positive, got {size}")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def _update_fields(row: RowData) -> Dict[str, Any]:
    return {k: v for k, v in row.proposed.items() if v is not None}


def update_docs_in_chunks(
    store,
    collection: str,
    rows: Sequence[RowData],
    counters: JobCounters,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    sync_tag_links: bool = False,
    on_chunk: Optional[Callable[[JobCounters], None]] = None,
) -> JobCounters:
    """
    Write each row's proposed fields (field-level update, never a replace).

    Args:
        store: Document store
        collection: Target collection
        rows: Rows to write, in order
        counters: Updated in place; written grows only after a group commits
        chunk_size: Writes per batch
        sync_tag_links: Rewrite the *_tags link rows after each group commits
        on_chunk: Called with the counters after every committed group

    Raises:
        Whatever the store raises for the failing group; its rows are added to
        counters.errors first.
    """
    groups = chunk(list(rows), chunk_size)
    for index, group in enumerate(groups, start=1):
        batch = store.batch()
        scheduled = []
        for row in group:
            fields = _update_fields(row)
            if not fields:
                counters.skipped += 1
                continue
            batch.update(collection, row.id, fields)
            scheduled.append(row)

        if scheduled:
            try:
                batch.commit()
            except Exception:
                counters.errors += len(scheduled)
                logger.error(f"❌ Chunk {index}/{len(groups)} failed for {collection} ({len(scheduled)} rows)")
                raise
            counters.written += len(scheduled)
            logger.info(f"✅ Chunk {index}/{len(groups)} committed: {len(scheduled)} rows in {collection}")

            if sync_tag_links:
                for row in scheduled:
                    if row.proposed.get("tags") is not None:
                        sync_tag_links_for(store, collection, row.id, row.proposed["tags"])

        if on_chunk:
            on_chunk(counters)

    return counters


def resolve_tag_ids(store, tag_names: Iterable[str]) -> List[str]:
    """Map tag names to tag document ids, creating missing tags."""
    tag_ids = []
    seen = set()
    for raw in tag_names:
        name = str(raw).strip().lower()
        if not name or name in seen:
            continue
        seen.add(name)
        existing = store.query(TAGS_COLLECTION, where=[("name", "==", name)], limit=1)
        if existing:
            tag_ids.append(existing[0].id)
        else:
            tag_id = store.add(TAGS_COLLECTION, {"name": name, "usageCount": 0})
            logger.debug(f"💾 Created tag '{name}' ({tag_id})")
            tag_ids.append(tag_id)
    return tag_ids


def sync_tag_links_for(store, collection: str, doc_id: str, tag_names: Iterable[str]) -> None:
    """Replace a document's link rows in the cocktail_tags/ingredient_tags relation."""
    if collection not in TAG_LINK_COLLECTIONS:
        return
    link_collection, id_field = TAG_LINK_COLLECTIONS[collection]

    tag_ids = resolve_tag_ids(store, tag_names)
    for link in store.query(link_collection, where=[(id_field, "==", doc_id)]):
        store.delete(link_collection, link.id)
    for tag_id in tag_ids:
        store.add(link_collection, {id_field: doc_id, "tagId": tag_id})
