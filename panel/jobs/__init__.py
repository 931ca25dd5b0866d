"""Job queue module - exports public API."""
from .huey_config import huey
from .runner import run_batch_job, start_commit_job, start_rollback_job
from .status import BatchJob, JobStateError, JobNotFoundError, create_job, get_job, update_job, list_jobs
