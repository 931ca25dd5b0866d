"""
Backup snapshots written before a batch touches any live document.

A snapshot is a JSON array of {id, name, description, tags} holding the
pre-mutation values of every matched row. Rollback replays it as a new job.
"""
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from batchops.errors import BackupNotFoundError
from batchops.preview import RowData
from tools.logging_utils import get_logger

logger = get_logger(__name__)


def backup_timestamp(now: Optional[datetime] = None) -> str:
    """UTC timestamp at whole-second precision with colons replaced: 2026-10-18T09-30-00."""
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H-%M-%S")


def backup_path(backups_dir, now: Optional[datetime] = None) -> Path:
    """
    Preferred path for a new snapshot: batch_<timestamp>.json.

    This is only a first choice; write_backup() claims the name and moves on
    to a numeric suffix if another commit got there first.
    """
    return Path(backups_dir) / f"batch_{backup_timestamp(now)}.json"


def _claim(path: Path):
    """Create `path` exclusively, falling back to <stem>_1, <stem>_2, ... when taken."""
    candidate = path
    counter = 1
    while True:
        try:
            return candidate, open(candidate, "x", encoding="utf-8")
        except FileExistsError:
            candidate = path.with_name(f"{path.stem}_{counter}{path.suffix}")
            counter += 1


def backup_rows(rows: Iterable[RowData]) -> List[Dict[str, Any]]:
    """Snapshot entries from each row's current values (never the proposed ones)."""
    return [
        {
            "id": row.id,
            "name": row.name,
            "description": row.current.get("description"),
            "tags": row.current.get("tags"),
        }
        for row in rows
    ]


def write_backup(path, rows: Iterable[RowData]) -> Path:
    """
    Write the snapshot, creating the parent directory.

    Returns the path actually written, which carries a suffix when `path`
    already existed. Raises OSError on failure.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    entries = backup_rows(rows)
    path, fh = _claim(path)
    with fh:
        json.dump(entries, fh, indent=2, ensure_ascii=False)
    logger.info(f"💾 Wrote backup of {len(entries)} rows to {path}")
    return path


def read_backup(path) -> List[RowData]:
    """
    Load a snapshot as rows whose current and proposed are both the backed-up values.

    Raises:
        BackupNotFoundError: If the file is missing or is not a snapshot
    """
    path = Path(path) if path else None
    if path is None or not path.exists():
        raise BackupNotFoundError(f"Backup file not found: {path}")

    try:
        entries = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise BackupNotFoundError(f"Backup file unreadable: {path} ({e})") from e
    if not isinstance(entries, list):
        raise BackupNotFoundError(f"Backup file is not a row list: {path}")

    rows = []
    for entry in entries:
        values = {"description": entry.get("description"), "tags": entry.get("tags")}
        rows.append(RowData(
            id=entry["id"],
            name=entry.get("name"),
            current=dict(values),
            proposed=dict(values),
        ))
    return rows
