"""Flattened {id, name, description, tags} rows for spreadsheet round-tripping."""
from typing import Dict, List

from batchops.executor import TAG_LINK_COLLECTIONS, TAGS_COLLECTION


def list_rows(store, collection: str) -> List[Dict[str, str]]:
    """
    Export every document in `collection` with its linked tag names comma-joined.

    Tags come from the cocktail_tags/ingredient_tags relation, in link order.
    """
    tag_names = {snap.id: snap.data.get("name") for snap in store.stream(TAGS_COLLECTION)}

    linked: Dict[str, List[str]] = {}
    if collection in TAG_LINK_COLLECTIONS:
        link_collection, id_field = TAG_LINK_COLLECTIONS[collection]
        for link in store.stream(link_collection):
            name = tag_names.get(str(link.data.get("tagId")))
            if name:
                linked.setdefault(str(link.data.get(id_field)), []).append(name)

    return [
        {
            "id": snap.id,
            "name": snap.data.get("name") or "",
            "description": snap.data.get("description") or "",
            "tags": ", ".join(linked.get(snap.id, [])),
        }
        for snap in store.stream(collection)
    ]
