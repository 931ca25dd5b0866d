"""Batch job routes - status polling and rollback."""
from flask import Blueprint, current_app, jsonify

from batchops import BackupNotFoundError
from doc_store import get_store
from panel.auth import admin_gate
from panel.jobs import JobNotFoundError, get_job, list_jobs, start_rollback_job
from panel.rate_limit import rate_limited
from tools.logging_utils import get_logger

logger = get_logger(__name__)

bp = Blueprint('batch_jobs', __name__)
bp.before_request(admin_gate)


@bp.route('/jobs')
def job_list():
    """Most recently started jobs, newest first."""
    try:
        jobs = list_jobs(get_store(), limit=current_app.config['JOBS_LIST_LIMIT'])
    except Exception as e:
        logger.error(f"❌ Listing jobs failed: {e}", exc_info=True)
        return jsonify({'error': str(e)}), 500
    return jsonify([job.to_dict() for job in jobs])


@bp.route('/jobs/<job_id>')
def job_detail(job_id):
    """One job record."""
    try:
        job = get_job(get_store(), job_id)
    except Exception as e:
        logger.error(f"❌ Loading job {job_id} failed: {e}", exc_info=True)
        return jsonify({'error': str(e)}), 500
    if not job:
        return jsonify({'error': 'Not found'}), 404
    return jsonify(job.to_dict())


@bp.route('/jobs/<job_id>/rollback', methods=['POST'])
@rate_limited
def job_rollback(job_id):
    """Replay the job's backup as a new rollback job."""
    try:
        job = start_rollback_job(get_store(), job_id)
    except (JobNotFoundError, BackupNotFoundError) as e:
        return jsonify({'error': str(e)}), 404
    except Exception as e:
        logger.error(f"❌ Rollback of {job_id} failed: {e}", exc_info=True)
        return jsonify({'error': str(e)}), 500
    return jsonify({'jobId': job.id, 'status': 'pending'})
