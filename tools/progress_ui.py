#!/usr/bin/env python3
"""
Rich Terminal UI for Batch Operations
=====================================

Preview tables, job summaries and a wait spinner for utils/batch_tool.py.
Uses rich for the terminal rendering.
"""

from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

STATUS_STYLES = {
    "pending": "yellow",
    "in_progress": "blue",
    "done": "green",
    "failed": "red",
}


def _short(value: Any, width: int = 48) -> str:
    text = "" if value is None else str(value).replace("\n", " ")
    return text if len(text) <= width else text[:width - 1] + "…"


def _tags(value: Optional[List[str]]) -> str:
    return ", ".join(value or [])


class BatchConsoleUI:
    """Terminal rendering for previews and job records."""

    def __init__(self, console: Optional[Console] = None, max_rows: int = 20):
        self.console = console or Console()
        self.max_rows = max_rows

    def show_preview(self, result: Dict[str, Any]) -> None:
        """Summary line plus a before/after table of the first rows."""
        rows = result.get("rows") or []
        missing = result.get("missing") or []
        self.console.print(
            f"📊 Preview: [bold]{result.get('willUpdate', 0)}[/bold] to update, "
            f"{result.get('skipped', 0)} skipped, {len(missing)} missing"
        )

        duplicates = (result.get("warnings") or {}).get("duplicates")
        if duplicates:
            self.console.print(f"⚠️ {duplicates} duplicate paste ids collapsed (last row wins)", style="yellow")
        if missing:
            more = " …" if len(missing) > 10 else ""
            self.console.print(f"   Missing ids: {', '.join(missing[:10])}{more}", style="yellow")

        if not rows:
            return

        table = Table(show_lines=False)
        table.add_column("id", style="cyan", no_wrap=True)
        table.add_column("name")
        table.add_column("description")
        table.add_column("tags")
        for row in rows[:self.max_rows]:
            current, proposed = row.get("current") or {}, row.get("proposed") or {}
            description = _short(current.get("description"))
            if "description" in proposed and proposed["description"] != current.get("description"):
                description = f"[red]{description}[/red]\n[green]{_short(proposed['description'])}[/green]"
            tags = _tags(current.get("tags"))
            if "tags" in proposed and proposed["tags"] != current.get("tags"):
                tags = f"[red]{tags}[/red]\n[green]{_tags(proposed['tags'])}[/green]"
            table.add_row(row["id"], row.get("name") or "", description, tags)
        self.console.print(table)

        if len(rows) > self.max_rows:
            self.console.print(f"   … and {len(rows) - self.max_rows} more rows")

    def show_job(self, job: Dict[str, Any]) -> None:
        """One job record as a bordered panel."""
        counts = job.get("counts") or {}
        status = job.get("status") or "unknown"
        lines = [
            f"Status: [{STATUS_STYLES.get(status, 'white')}]{status}[/]",
            f"Mode: {job.get('mode')}  Collection: {job.get('collection')}",
            f"Matched {counts.get('matched', 0)}  Written {counts.get('written', 0)}  "
            f"Skipped {counts.get('skipped', 0)}  Errors {counts.get('errors', 0)}",
            f"Started: {job.get('startedAt')}",
        ]
        if job.get("finishedAt"):
            lines.append(f"Finished: {job['finishedAt']}")
        if job.get("note"):
            lines.append(f"Note: {job['note']}")
        if job.get("originalJobId"):
            lines.append(f"Rolls back: {job['originalJobId']}")
        if job.get("backupFile"):
            lines.append(f"Backup: {job['backupFile']}")
        for err in job.get("errors") or []:
            lines.append(f"[red]❌ {err.get('message')}[/red]")

        self.console.print(Panel(
            "\n".join(lines),
            title=f"Job {job.get('jobId')}",
            border_style=STATUS_STYLES.get(status, "white"),
        ))

    def show_jobs(self, jobs: List[Dict[str, Any]]) -> None:
        """Compact table of recent jobs."""
        if not jobs:
            self.console.print("No batch jobs yet.")
            return
        table = Table()
        for column in ("jobId", "status", "mode", "collection", "written", "errors", "startedAt"):
            table.add_column(column)
        for job in jobs:
            counts = job.get("counts") or {}
            status = job.get("status") or ""
            table.add_row(
                job.get("jobId") or "",
                f"[{STATUS_STYLES.get(status, 'white')}]{status}[/]",
                job.get("mode") or "",
                job.get("collection") or "",
                str(counts.get("written", 0)),
                str(counts.get("errors", 0)),
                job.get("startedAt") or "",
            )
        self.console.print(table)

    @contextmanager
    def waiting(self, message: str):
        """Spinner while polling a job."""
        with self.console.status(message):
            yield


# Global UI instance for easy access
ui = BatchConsoleUI()
