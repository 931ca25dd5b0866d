"""Batch job records persisted in the document store's admin_jobs collection."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from batchops.executor import JobCounters
from tools.logging_utils import get_logger

logger = get_logger(__name__)

JOBS_COLLECTION = 'admin_jobs'

JOB_MODES = ('query', 'paste', 'rollback')

# pending -> in_progress -> done|failed, never backwards
_ALLOWED_TRANSITIONS = {
    'pending': ('in_progress', 'failed'),
    'in_progress': ('done', 'failed'),
    'done': (),
    'failed': (),
}


class JobStateError(Exception):
    """Raised when an update would move a job's status backwards."""


class JobNotFoundError(Exception):
    """Raised when a job id has no record."""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class BatchJob:
    """Job record data."""
    id: str
    status: str  # pending, in_progress, done, failed
    mode: str  # query, paste, rollback
    collection: str
    counts: Dict[str, int]
    backup_file: str
    started_at: str
    note: Optional[str] = None
    finished_at: Optional[str] = None
    errors: List[Dict[str, str]] = field(default_factory=list)
    original_job_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """API shape (camelCase, jobId)."""
        data = {'jobId': self.id}
        data.update(_to_doc(self))
        return data

    @classmethod
    def from_doc(cls, job_id: str, doc: Dict[str, Any]) -> 'BatchJob':
        return cls(
            id=job_id,
            status=doc['status'],
            mode=doc.get('mode'),
            collection=doc.get('collection'),
            counts=dict(doc.get('counts') or {}),
            backup_file=doc.get('backupFile'),
            started_at=doc.get('startedAt'),
            note=doc.get('note'),
            finished_at=doc.get('finishedAt'),
            errors=list(doc.get('errors') or []),
            original_job_id=doc.get('originalJobId'),
        )


def _to_doc(job: BatchJob) -> Dict[str, Any]:
    doc = {
        'status': job.status,
        'mode': job.mode,
        'collection': job.collection,
        'note': job.note,
        'counts': dict(job.counts),
        'backupFile': job.backup_file,
        'startedAt': job.started_at,
    }
    if job.finished_at:
        doc['finishedAt'] = job.finished_at
    if job.errors:
        doc['errors'] = list(job.errors)
    if job.original_job_id:
        doc['originalJobId'] = job.original_job_id
    return doc


def create_job(
    store,
    mode: str,
    collection: str,
    counters: JobCounters,
    backup_file: str,
    note: Optional[str] = None,
    original_job_id: Optional[str] = None,
) -> BatchJob:
    """Create a pending job record."""
    if mode not in JOB_MODES:
        raise ValueError(f"Unknown job mode: {mode}")

    job = BatchJob(
        id='',
        status='pending',
        mode=mode,
        collection=collection,
        counts=counters.to_dict(),
        backup_file=str(backup_file),
        started_at=_now(),
        note=note,
        original_job_id=original_job_id,
    )
    job.id = store.add(JOBS_COLLECTION, _to_doc(job))
    logger.info(f"🚀 Created {mode} job {job.id} on {collection} ({job.counts.get('matched', 0)} matched)")
    return job


def get_job(store, job_id: str) -> Optional[BatchJob]:
    """Get job by ID."""
    doc = store.get(JOBS_COLLECTION, job_id)
    if doc is None:
        return None
    return BatchJob.from_doc(job_id, doc)


def update_job(
    store,
    job_id: str,
    status: Optional[str] = None,
    counts: Optional[Dict[str, int]] = None,
    errors: Optional[List[Dict[str, str]]] = None,
    finished: bool = False,
) -> BatchJob:
    """
    Update a job record.

    Raises:
        JobNotFoundError: If the job does not exist
        JobStateError: If `status` is not reachable from the current status
    """
    job = get_job(store, job_id)
    if job is None:
        raise JobNotFoundError(f"Job not found: {job_id}")

    updates: Dict[str, Any] = {}
    if status and status != job.status:
        if status not in _ALLOWED_TRANSITIONS.get(job.status, ()):
            raise JobStateError(f"Job {job_id} cannot move from {job.status} to {status}")
        updates['status'] = status
        job.status = status
    if counts is not None:
        updates['counts'] = dict(counts)
        job.counts = dict(counts)
    if errors:
        updates['errors'] = list(errors)
        job.errors = list(errors)
    if finished:
        job.finished_at = _now()
        updates['finishedAt'] = job.finished_at

    if updates:
        store.update(JOBS_COLLECTION, job_id, updates)
        if 'status' in updates:
            logger.info(f"📊 Job {job_id} -> {status}")
    return job


def list_jobs(store, limit: int = 20) -> List[BatchJob]:
    """List recent jobs, newest first."""
    snapshots = store.query(JOBS_COLLECTION, order_by='startedAt', descending=True, limit=limit)
    return [BatchJob.from_doc(snap.id, snap.data) for snap in snapshots]
