"""
Batch job runner.

start_commit_job / start_rollback_job do the synchronous half of a request
(preview re-derivation, backup, job record) and enqueue run_batch_job, which
drives the job through in_progress to done or failed on the huey worker.
"""
from typing import Any, Dict, List, Optional

from batchops.backup import backup_path, read_backup, write_backup
from batchops.errors import EmptySelectionError
from batchops.executor import JobCounters, update_docs_in_chunks
from batchops.preview import RowData, build_preview
from config import get_backups_dir, get_batch_config
from doc_store import get_store
from tools.logging_utils import get_job_logger, get_logger

from .huey_config import huey
from .status import BatchJob, JobNotFoundError, create_job, get_job, update_job

logger = get_logger(__name__)


@huey.task()
def run_batch_job(job_id: str, collection: str, rows: List[Dict[str, Any]]):
    """
    Write `rows` for one job and record the outcome.

    Counters are persisted after every chunk so polling sees progress. Any
    exception marks the job failed with the counters at that point; chunks
    already committed stay committed.
    """
    store = get_store()
    log = get_job_logger(__name__, job_id)
    job = get_job(store, job_id)
    if job is None:
        log.error("❌ Job record vanished before it started")
        return

    counters = JobCounters.from_dict(job.counts)
    batch_cfg = get_batch_config()
    row_data = [RowData.from_dict(r) for r in rows]

    def persist(c: JobCounters):
        update_job(store, job_id, counts=c.to_dict())

    try:
        update_job(store, job_id, status='in_progress')
        update_docs_in_chunks(
            store,
            collection,
            row_data,
            counters,
            chunk_size=batch_cfg['chunk_size'],
            sync_tag_links=batch_cfg['sync_tag_links'],
            on_chunk=persist,
        )
    except Exception as e:
        log.error(f"❌ Failed: {e}", exc_info=True)
        update_job(
            store,
            job_id,
            status='failed',
            counts=counters.to_dict(),
            errors=[{'message': str(e)}],
            finished=True,
        )
        return

    update_job(store, job_id, status='done', counts=counters.to_dict(), finished=True)
    log.info(f"✅ Done: {counters.written} written, {counters.skipped} skipped")


def start_commit_job(store, body) -> BatchJob:
    """
    Re-run the preview for a validated commit body and start writing it.

    The preview is recomputed here rather than trusted from the client, so a
    document edited since the preview is committed from its new state.

    Raises:
        EmptySelectionError: If no rows survive skip filtering and selectIds
        OSError: If the backup cannot be written (no job is created)
    """
    preview = build_preview(store, body)
    rows = preview.rows

    if body.select_ids is not None:
        selected = set(body.select_ids)
        to_write = [row for row in rows if row.id in selected]
    else:
        to_write = rows

    if not to_write:
        raise EmptySelectionError('No rows selected for update')

    counters = JobCounters(matched=len(rows))
    path = write_backup(backup_path(get_backups_dir()), rows)

    job = create_job(
        store,
        mode=body.mode,
        collection=body.collection,
        counters=counters,
        backup_file=str(path),
        note=body.note,
    )
    logger.info(f"🚀 Commit job {job.id}: {len(to_write)} of {len(rows)} rows selected")
    run_batch_job(job.id, body.collection, [row.to_dict() for row in to_write])
    return job


def start_rollback_job(store, job_id: str, note: Optional[str] = None) -> BatchJob:
    """
    Replay a job's backup as a new rollback job.

    Raises:
        JobNotFoundError: If `job_id` has no record
        BackupNotFoundError: If its backup file is gone
    """
    original = get_job(store, job_id)
    if original is None:
        raise JobNotFoundError(f'Job not found: {job_id}')

    rows = read_backup(original.backup_file)
    job = create_job(
        store,
        mode='rollback',
        collection=original.collection,
        counters=JobCounters(matched=len(rows)),
        backup_file=original.backup_file,
        note=note,
        original_job_id=job_id,
    )
    logger.info(f"🚀 Rollback job {job.id} replays {len(rows)} rows from {original.backup_file}")
    run_batch_job(job.id, original.collection, [row.to_dict() for row in rows])
    return job
