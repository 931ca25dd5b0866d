#!/usr/bin/env python3
"""
Admin Batch Tool
================

Command-line front end for the panel's batch endpoints: export rows, preview
an edit, commit it as a background job, watch jobs and roll them back.

Features:
- ✅ Query mode (filter + operation) and paste mode (CSV/JSON rows)
- ✅ Preview table before anything is written
- ✅ Confirmation prompt before commit/rollback (skip with --yes)
- ✅ --wait polls the job until it is done or failed

Usage:
    # Export ingredients to CSV for editing in a spreadsheet
    python -m utils.batch_tool export ingredients --out ingredients.csv

    # Preview removing a tag from every ingredient that carries it
    python -m utils.batch_tool preview ingredients --field tags --mode tags_any \\
        --value stale --op tags_remove --remove stale

    # Commit edited spreadsheet rows and wait for the job
    python -m utils.batch_tool commit ingredients --paste ingredients.csv --yes --wait

    # Inspect and roll back
    python -m utils.batch_tool jobs
    python -m utils.batch_tool job <jobId>
    python -m utils.batch_tool rollback <jobId> --wait
"""

import sys
import os

# Add parent directory to Python path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import csv
import json
import argparse
from pathlib import Path
from typing import Any, Dict, List, Optional

from admin_client import AdminBatchClient, AdminClientError
from batchops.filters import DESCRIPTION_MODES, TAG_MODES
from batchops.operations import OPERATION_TYPES
from batchops.tags import parse_tags_cell, split_tags_cell
from config import get_batch_config
from tools.logging_utils import get_logger, log_with_emoji
from tools.progress_ui import ui

logger = get_logger(__name__)

EXPORT_COLUMNS = ["id", "name", "description", "tags"]


def say(message: str) -> None:
    """Print a status line and mirror it to the log at the emoji's level."""
    print(message)
    log_with_emoji(logger, message)


# =============================================================================
# REQUEST BUILDING
# =============================================================================

def load_paste_rows(path: Path, max_tags: Optional[int] = None) -> List[Dict[str, Any]]:
    """
    Read paste rows from a CSV (id, description, tags columns) or JSON file.

    Empty CSV cells leave that field unchanged. Tag cells accept `|`, `,` or
    JSON-array notation. Rows without an id are dropped.

    Raises:
        ValueError: If the file has no id column or is not a JSON list of rows
    """
    max_tags = max_tags or get_batch_config()["max_tags"]
    path = Path(path)

    if path.suffix.lower() == ".json":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, list):
            raise ValueError(f"{path} must contain a JSON list of rows")
        records = data
    else:
        with open(path, "r", encoding="utf-8", newline="") as f:
            reader = csv.DictReader(f)
            if not reader.fieldnames or "id" not in reader.fieldnames:
                raise ValueError(f"{path} needs an 'id' column")
            records = list(reader)

    rows = []
    for record in records:
        row_id = str(record.get("id") or "").strip()
        if not row_id:
            continue

        source = record.get("proposed") if isinstance(record.get("proposed"), dict) else record
        proposed: Dict[str, Any] = {}
        description = source.get("description")
        if description is not None and (description != "" or "proposed" in record):
            proposed["description"] = description
        tags = source.get("tags")
        if tags not in (None, ""):
            proposed["tags"] = parse_tags_cell(tags, max_tags=max_tags)

        row = {"id": row_id, "proposed": proposed}
        if record.get("name"):
            row["name"] = record["name"]
        rows.append(row)
    return rows


def build_operation(args) -> Dict[str, Any]:
    """Turn --op and its payload flags into an operation dict."""
    op = args.op
    if op == "description_set":
        if args.text is None:
            raise ValueError("--op description_set needs --text")
        return {"type": op, "payload": {"newText": args.text}}
    if op == "description_find_replace":
        if not args.find:
            raise ValueError("--op description_find_replace needs --find")
        return {"type": op, "payload": {
            "find": args.find,
            "replace": args.replace,
            "regex": args.regex,
            "caseInsensitive": args.case_insensitive,
        }}
    if op == "tags_add":
        return {"type": op, "payload": {"add": split_tags_cell(args.add)}}
    if op == "tags_remove":
        return {"type": op, "payload": {"remove": split_tags_cell(args.remove)}}
    if op == "tags_replace":
        return {"type": op, "payload": {"newTags": split_tags_cell(args.tags)}}
    raise ValueError(f"Unknown operation: {op}")


def build_request_body(args) -> Dict[str, Any]:
    """Build a preview/commit body from parsed CLI arguments."""
    options = {
        "onlyImportedPlaceholders": args.only_placeholders,
        "skipIfSame": not args.no_skip_same,
    }

    if args.paste:
        body = {
            "mode": "paste",
            "collection": args.collection,
            "rows": load_paste_rows(Path(args.paste)),
            "options": options,
        }
    else:
        if not args.mode or not args.op:
            raise ValueError("Query mode needs --mode and --op (or use --paste FILE)")
        field = args.field or ("tags" if args.mode in TAG_MODES else "description")
        if field == "tags":
            value = [v for raw in (args.value or []) for v in split_tags_cell(raw)]
        else:
            value = args.value[0] if args.value else None
        filters = {"field": field, "mode": args.mode, "value": value}
        if args.limit:
            filters["limit"] = args.limit
        body = {
            "mode": "query",
            "collection": args.collection,
            "filters": filters,
            "operation": build_operation(args),
            "options": options,
        }

    if getattr(args, "select", None):
        body["selectIds"] = list(args.select)
    if getattr(args, "note", None):
        body["note"] = args.note
    return body


# =============================================================================
# OUTPUT
# =============================================================================

def log_job(job: Dict[str, Any]) -> None:
    counts = job.get("counts") or {}
    icon = {"done": "✅", "failed": "❌"}.get(job.get("status"), "🔍")
    log_with_emoji(logger, f"{icon} Job {job.get('jobId')} {job.get('status')}: "
                           f"written={counts.get('written', 0)} errors={counts.get('errors', 0)}")


def confirm(prompt: str, assume_yes: bool) -> bool:
    if assume_yes:
        return True
    answer = input(f"\n{prompt} [y/N]: ").strip().lower()
    return answer in ("y", "yes")


# =============================================================================
# COMMANDS
# =============================================================================

def cmd_export(client: AdminBatchClient, args) -> int:
    rows = client.list_rows(args.collection)
    as_json = args.json or (args.out or "").lower().endswith(".json")
    out = open(args.out, "w", encoding="utf-8", newline="") if args.out else sys.stdout
    try:
        if as_json:
            json.dump(rows, out, indent=2, ensure_ascii=False)
            out.write("\n")
        else:
            writer = csv.DictWriter(out, fieldnames=EXPORT_COLUMNS, extrasaction="ignore")
            writer.writeheader()
            writer.writerows(rows)
    finally:
        if args.out:
            out.close()
    if args.out:
        say(f"💾 Exported {len(rows)} {args.collection} to {args.out}")
    return 0


def cmd_preview(client: AdminBatchClient, args) -> int:
    ui.show_preview(client.preview(build_request_body(args)))
    return 0


def _finish(client: AdminBatchClient, job_id: str, wait: bool) -> int:
    if not wait:
        say(f"🚀 Job {job_id} queued (check with: batch_tool job {job_id})")
        return 0
    with ui.waiting(f"Waiting for job {job_id}..."):
        job = client.wait_for_job(job_id)
    ui.show_job(job)
    log_job(job)
    return 0 if job.get("status") == "done" else 1


def cmd_commit(client: AdminBatchClient, args) -> int:
    body = build_request_body(args)
    result = client.preview(body)
    ui.show_preview(result)

    will_update = result.get("willUpdate", 0)
    if will_update == 0:
        say("⚠️ Nothing to update")
        return 0
    count = min(len(args.select), will_update) if args.select else will_update
    if not confirm(f"Commit {count} {args.collection} updates?", args.yes):
        print("Cancelled.")
        return 1

    job = client.commit(body)
    return _finish(client, job["jobId"], args.wait)


def cmd_jobs(client: AdminBatchClient, args) -> int:
    ui.show_jobs(client.list_jobs())
    return 0


def cmd_job(client: AdminBatchClient, args) -> int:
    ui.show_job(client.get_job(args.job_id))
    return 0


def cmd_rollback(client: AdminBatchClient, args) -> int:
    ui.show_job(client.get_job(args.job_id))
    if not confirm(f"Restore the snapshot taken before job {args.job_id}?", args.yes):
        print("Cancelled.")
        return 1
    job = client.rollback(args.job_id)
    return _finish(client, job["jobId"], args.wait)


COMMANDS = {
    "export": cmd_export,
    "preview": cmd_preview,
    "commit": cmd_commit,
    "jobs": cmd_jobs,
    "job": cmd_job,
    "rollback": cmd_rollback,
}


def _add_selection_args(sub: argparse.ArgumentParser) -> None:
    sub.add_argument("collection", choices=["ingredients", "cocktails"])
    sub.add_argument("--paste", metavar="FILE",
                     help="CSV or JSON rows (id, description, tags) instead of a query")
    sub.add_argument("--field", choices=["description", "tags"],
                     help="Filter field (inferred from --mode when omitted)")
    sub.add_argument("--mode", choices=sorted(set(DESCRIPTION_MODES) | set(TAG_MODES)),
                     help="Filter mode")
    sub.add_argument("--value", action="append",
                     help="Filter value (repeat or delimit with | for tag modes)")
    sub.add_argument("--limit", type=int, metavar="N", help="Native query limit")
    sub.add_argument("--op", choices=list(OPERATION_TYPES), help="Operation to apply")
    sub.add_argument("--text", help="description_set: new description")
    sub.add_argument("--find", help="description_find_replace: text or pattern to find")
    sub.add_argument("--replace", help="description_find_replace: replacement")
    sub.add_argument("--regex", action="store_true", help="Treat --find as a regex")
    sub.add_argument("--case-insensitive", action="store_true", help="Case-insensitive find")
    sub.add_argument("--add", help="tags_add: tags to add")
    sub.add_argument("--remove", help="tags_remove: tags to remove")
    sub.add_argument("--tags", help="tags_replace: new tag list")
    sub.add_argument("--only-placeholders", action="store_true",
                     help="Only touch rows whose description is empty or a placeholder")
    sub.add_argument("--no-skip-same", action="store_true",
                     help="Keep rows whose proposed value equals the current one")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Bulk-edit cocktail and ingredient descriptions and tags",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m utils.batch_tool export cocktails --out cocktails.csv
  python -m utils.batch_tool preview ingredients --mode empty --op description_set --text "TBD"
  python -m utils.batch_tool commit ingredients --paste edits.csv --yes --wait
  python -m utils.batch_tool rollback <jobId> --yes
        """
    )
    parser.add_argument("--url", help="Panel base URL (default: client.panel_url)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    export = subparsers.add_parser("export", help="Export rows to CSV")
    export.add_argument("collection", choices=["ingredients", "cocktails"])
    export.add_argument("--out", metavar="FILE", help="Output file, JSON when it ends in .json (default: stdout)")
    export.add_argument("--json", action="store_true", help="Write JSON instead of CSV")

    preview = subparsers.add_parser("preview", help="Show what a batch edit would change")
    _add_selection_args(preview)

    commit = subparsers.add_parser("commit", help="Run a batch edit as a background job")
    _add_selection_args(commit)
    commit.add_argument("--select", action="append", metavar="ID",
                        help="Only commit these ids (repeatable)")
    commit.add_argument("--note", help="Note stored on the job record")
    commit.add_argument("--yes", action="store_true", help="Skip confirmation prompt")
    commit.add_argument("--wait", action="store_true", help="Poll until the job finishes")

    subparsers.add_parser("jobs", help="List recent jobs")

    job = subparsers.add_parser("job", help="Show one job")
    job.add_argument("job_id")

    rollback = subparsers.add_parser("rollback", help="Restore a job's pre-commit snapshot")
    rollback.add_argument("job_id")
    rollback.add_argument("--yes", action="store_true", help="Skip confirmation prompt")
    rollback.add_argument("--wait", action="store_true", help="Poll until the job finishes")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        with AdminBatchClient(base_url=args.url) as client:
            return COMMANDS[args.command](client, args)
    except (ValueError, OSError) as e:
        print(f"\n❌ {e}")
        return 2
    except AdminClientError as e:
        logger.error(f"Batch tool request failed: {e}")
        print(f"\n❌ {e}")
        return 1
    except KeyboardInterrupt:
        logger.warning("Batch tool interrupted by user")
        print("\n❌ Interrupted by user")
        return 1


if __name__ == "__main__":
    sys.exit(main())
