#!/usr/bin/env python3
"""
Document Store Client
=====================

Minimal document-store interface used by the admin batch pipeline, with two
backends:
- SQLite (default): JSON documents in a single table, one transaction per batch
- Memory: dict-backed store for development and tests

Documents are plain dicts addressed by (collection, doc_id). The interface is
deliberately small: get, query (equality and array-contains-any), stream,
add/set/update/delete, and atomic write batches.

Usage:
    from doc_store import get_store

    store = get_store()  # Backend selected from config.yaml (store.backend)

    doc = store.get("ingredients", "ing-1")
    stale = store.query("ingredients", where=[("tags", "array-contains-any", ["stale"])])

    batch = store.batch()
    batch.update("ingredients", "ing-1", {"tags": ["citrus"]})
    batch.commit()

Architecture:
    DocumentStore (interface)
    ├── SqliteDocumentStore
    │   ├── Connection per call, JSON column per document
    │   └── Batches applied inside one transaction
    └── MemoryDocumentStore
        ├── Deep-copied dicts behind an RLock
        └── Counts WriteBatch commits (batch_commits)
"""

import copy
import json
import sqlite3
import threading
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from tools.logging_utils import get_logger

logger = get_logger(__name__)

# Per-batch write ceiling, matching hosted document stores
MAX_BATCH_WRITES = 500

SUPPORTED_OPERATORS = ("==", "array-contains-any")

WhereClause = Tuple[str, str, Any]


# =============================================================================
# EXCEPTIONS
# =============================================================================

class DocStoreError(Exception):
    """
    Base exception for document store errors.

    Attributes:
        message: Human-readable error description
        operation: The operation that failed (e.g., "batch_commit", "query")
        details: Additional context (collection, doc_id, ...)
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.operation = operation
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with context."""
        parts = [self.message]
        if self.operation:
            parts.insert(0, f"[{self.operation}]")
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"({detail_str})")
        return " ".join(parts)


class DocNotFoundError(DocStoreError):
    """Raised when an update targets a document that does not exist."""


class BatchLimitError(DocStoreError):
    """Raised when a write batch holds more operations than the store accepts."""


# =============================================================================
# SNAPSHOTS AND QUERY HELPERS
# =============================================================================

@dataclass
class DocSnapshot:
    """A document read from the store."""
    id: str
    data: Dict[str, Any]


def generate_id() -> str:
    """20-character random document id."""
    return uuid.uuid4().hex[:20]


def _validate_where(where: Optional[Sequence[WhereClause]]) -> List[WhereClause]:
    clauses = list(where or [])
    for field, op, value in clauses:
        if op not in SUPPORTED_OPERATORS:
            raise DocStoreError(
                f"Unsupported operator '{op}'",
                operation="query",
                details={"field": field, "supported": "|".join(SUPPORTED_OPERATORS)},
            )
        if op == "array-contains-any" and not isinstance(value, (list, tuple)):
            raise DocStoreError(
                "array-contains-any needs a list value",
                operation="query",
                details={"field": field},
            )
    return clauses


def _matches_where(data: Dict[str, Any], clauses: Iterable[WhereClause]) -> bool:
    """Evaluate where clauses. `== None` matches null and absent fields."""
    for field, op, value in clauses:
        actual = data.get(field)
        if op == "==":
            if actual != value:
                return False
        elif op == "array-contains-any":
            if not isinstance(actual, list) or not any(v in actual for v in value):
                return False
    return True


def _sort_key(field: str):
    def key(snapshot: DocSnapshot):
        value = snapshot.data.get(field)
        return (value is None, value if value is not None else "")
    return key


def _select(
    snapshots: List[DocSnapshot],
    where: Optional[Sequence[WhereClause]],
    order_by: Optional[str],
    descending: bool,
    limit: Optional[int],
) -> List[DocSnapshot]:
    clauses = _validate_where(where)
    result = [s for s in snapshots if _matches_where(s.data, clauses)]
    if order_by:
        present = [s for s in result if s.data.get(order_by) is not None]
        absent = [s for s in result if s.data.get(order_by) is None]
        present.sort(key=_sort_key(order_by), reverse=descending)
        result = present + absent
    if limit:
        result = result[:limit]
    return result


# =============================================================================
# WRITE BATCH
# =============================================================================

class WriteBatch:
    """
    Queue of writes applied atomically by commit().

    update() merges top-level fields into an existing document and fails the
    whole batch if the document is missing. set() creates or replaces.
    """

    def __init__(self, store: "DocumentStore", max_writes: int = MAX_BATCH_WRITES):
        self._store = store
        self._max_writes = max_writes
        self._ops: List[Tuple[str, str, str, Optional[Dict[str, Any]]]] = []
        self._committed = False

    def __len__(self) -> int:
        return len(self._ops)

    def _queue(self, kind: str, collection: str, doc_id: str, data: Optional[Dict[str, Any]]):
        if self._committed:
            raise DocStoreError("Batch already committed", operation="batch")
        if len(self._ops) >= self._max_writes:
            raise BatchLimitError(
                "Too many writes in one batch",
                operation="batch",
                details={"max_writes": self._max_writes},
            )
        self._ops.append((kind, collection, doc_id, copy.deepcopy(data)))
        return self

    def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> "WriteBatch":
        if not data:
            raise DocStoreError("Empty update", operation="batch_update", details={"doc_id": doc_id})
        return self._queue("update", collection, doc_id, data)

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> "WriteBatch":
        return self._queue("set", collection, doc_id, data)

    def delete(self, collection: str, doc_id: str) -> "WriteBatch":
        return self._queue("delete", collection, doc_id, None)

    def commit(self) -> None:
        if self._committed:
            raise DocStoreError("Batch already committed", operation="batch_commit")
        self._store._commit_batch(self._ops)
        self._committed = True


# =============================================================================
# STORE INTERFACE
# =============================================================================

class DocumentStore:
    """Interface shared by the store backends."""

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def stream(self, collection: str) -> List[DocSnapshot]:
        raise NotImplementedError

    def _apply_writes(self, ops) -> None:
        """Apply (kind, collection, doc_id, data) writes atomically."""
        raise NotImplementedError

    def _commit_batch(self, ops) -> None:
        self._apply_writes(ops)

    def query(
        self,
        collection: str,
        where: Optional[Sequence[WhereClause]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[DocSnapshot]:
        """Return documents matching every where clause."""
        return _select(self.stream(collection), where, order_by, descending, limit)

    def batch(self) -> WriteBatch:
        return WriteBatch(self)

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        """Create a document under a generated id and return the id."""
        doc_id = generate_id()
        self.set(collection, doc_id, data)
        return doc_id

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        self._apply_writes([("set", collection, doc_id, copy.deepcopy(data))])

    def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        if not data:
            raise DocStoreError("Empty update", operation="update", details={"doc_id": doc_id})
        self._apply_writes([("update", collection, doc_id, copy.deepcopy(data))])

    def delete(self, collection: str, doc_id: str) -> None:
        self._apply_writes([("delete", collection, doc_id, None)])

    def close(self) -> None:
        return None


class MemoryDocumentStore(DocumentStore):
    """Dict-backed store. Reads and writes deep-copy so callers never share state."""

    def __init__(self, initial: Optional[Dict[str, Dict[str, Dict[str, Any]]]] = None):
        self._lock = threading.RLock()
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = copy.deepcopy(initial or {})
        self.batch_commits = 0

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            data = self._collections.get(collection, {}).get(doc_id)
            return copy.deepcopy(data) if data is not None else None

    def stream(self, collection: str) -> List[DocSnapshot]:
        with self._lock:
            docs = self._collections.get(collection, {})
            return [DocSnapshot(id=doc_id, data=copy.deepcopy(data)) for doc_id, data in docs.items()]

    def _commit_batch(self, ops) -> None:
        with self._lock:
            self._apply_writes(ops)
            self.batch_commits += 1

    def _apply_writes(self, ops) -> None:
        with self._lock:
            for kind, collection, doc_id, _ in ops:
                if kind == "update" and doc_id not in self._collections.get(collection, {}):
                    raise DocNotFoundError(
                        "No document to update",
                        operation="batch_commit",
                        details={"collection": collection, "doc_id": doc_id},
                    )
            for kind, collection, doc_id, data in ops:
                docs = self._collections.setdefault(collection, {})
                if kind == "set":
                    docs[doc_id] = copy.deepcopy(data)
                elif kind == "update":
                    docs[doc_id].update(copy.deepcopy(data))
                elif kind == "delete":
                    docs.pop(doc_id, None)


class SqliteDocumentStore(DocumentStore):
    """JSON documents in one SQLite table keyed by (collection, id)."""

    def __init__(self, db_path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _get_db(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), timeout=30)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self):
        conn = self._get_db()
        try:
            conn.execute('''
                CREATE TABLE IF NOT EXISTS documents (
                    collection TEXT NOT NULL,
                    id TEXT NOT NULL,
                    data TEXT NOT NULL,
                    PRIMARY KEY (collection, id)
                )
            ''')
            conn.commit()
        finally:
            conn.close()

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        conn = self._get_db()
        try:
            row = conn.execute(
                'SELECT data FROM documents WHERE collection = ? AND id = ?',
                (collection, doc_id)
            ).fetchone()
        finally:
            conn.close()
        return json.loads(row['data']) if row else None

    def stream(self, collection: str) -> List[DocSnapshot]:
        conn = self._get_db()
        try:
            rows = conn.execute(
                'SELECT id, data FROM documents WHERE collection = ? ORDER BY rowid',
                (collection,)
            ).fetchall()
        finally:
            conn.close()
        return [DocSnapshot(id=row['id'], data=json.loads(row['data'])) for row in rows]

    def _apply_writes(self, ops) -> None:
        conn = self._get_db()
        try:
            with conn:
                for kind, collection, doc_id, data in ops:
                    if kind == "set":
                        conn.execute(
                            'INSERT OR REPLACE INTO documents (collection, id, data) VALUES (?, ?, ?)',
                            (collection, doc_id, json.dumps(data))
                        )
                    elif kind == "update":
                        row = conn.execute(
                            'SELECT data FROM documents WHERE collection = ? AND id = ?',
                            (collection, doc_id)
                        ).fetchone()
                        if row is None:
                            raise DocNotFoundError(
                                "No document to update",
                                operation="batch_commit",
                                details={"collection": collection, "doc_id": doc_id},
                            )
                        merged = json.loads(row['data'])
                        merged.update(data)
                        conn.execute(
                            'UPDATE documents SET data = ? WHERE collection = ? AND id = ?',
                            (json.dumps(merged), collection, doc_id)
                        )
                    elif kind == "delete":
                        conn.execute(
                            'DELETE FROM documents WHERE collection = ? AND id = ?',
                            (collection, doc_id)
                        )
        except sqlite3.Error as e:
            raise DocStoreError(str(e), operation="batch_commit", details={"writes": len(ops)}) from e
        finally:
            conn.close()


# =============================================================================
# PROCESS-WIDE STORE
# =============================================================================

_store: Optional[DocumentStore] = None
_store_lock = threading.Lock()


def create_store(store_config: Optional[Dict[str, Any]] = None) -> DocumentStore:
    """Build a store from config.yaml's store section (or the given dict)."""
    if store_config is None:
        from config import get_store_config
        store_config = get_store_config()

    backend = store_config.get("backend", "sqlite")
    if backend == "memory":
        logger.info("💾 Using in-memory document store")
        return MemoryDocumentStore()
    if backend == "sqlite":
        logger.info(f"💾 Using SQLite document store at {store_config['path']}")
        return SqliteDocumentStore(store_config["path"])
    raise DocStoreError(f"Unknown store backend '{backend}'", operation="create_store")


def get_store() -> DocumentStore:
    """Return the process-wide store, creating it on first use."""
    global _store
    with _store_lock:
        if _store is None:
            _store = create_store()
        return _store


def set_store(store: Optional[DocumentStore]) -> None:
    """Replace the process-wide store (None resets to lazy creation)."""
    global _store
    with _store_lock:
        _store = store
