"""Admin batch routes - preview, commit and export helpers."""
import uuid

from flask import Blueprint, jsonify, request
from pydantic import ValidationError

from batchops import BatchValidationError, EmptySelectionError, build_preview, list_rows, preview_response
from batchops.schemas import parse_commit_request, parse_preview_request
from doc_store import get_store
from panel.auth import admin_gate
from panel.jobs import start_commit_job
from panel.rate_limit import rate_limited
from tools.logging_utils import get_logger

logger = get_logger(__name__)

bp = Blueprint('admin_batch', __name__)
bp.before_request(admin_gate)


@bp.route('/preview', methods=['POST'])
@rate_limited
def preview():
    """Dry run: what a commit with this body would change. Writes nothing."""
    try:
        body = parse_preview_request(request.get_json(silent=True))
    except ValidationError as e:
        return jsonify({'error': str(e)}), 400

    try:
        result = build_preview(get_store(), body)
    except BatchValidationError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        logger.error(f"❌ Preview failed: {e}", exc_info=True)
        return jsonify({'error': str(e)}), 500

    return jsonify(preview_response(result, f"temp-{uuid.uuid4()}"))


@bp.route('/commit', methods=['POST'])
@rate_limited
def commit():
    """
    Recompute the preview, back it up, and start the write job.

    Responds as soon as the job record exists; poll /jobs/<jobId> for progress.
    """
    try:
        body = parse_commit_request(request.get_json(silent=True))
    except ValidationError as e:
        return jsonify({'error': str(e)}), 400

    try:
        job = start_commit_job(get_store(), body)
    except (BatchValidationError, EmptySelectionError) as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        logger.error(f"❌ Commit failed before any write: {e}", exc_info=True)
        return jsonify({'error': str(e)}), 500

    return jsonify({'jobId': job.id, 'status': 'pending'})


def _export(collection):
    try:
        return jsonify(list_rows(get_store(), collection))
    except Exception as e:
        logger.error(f"❌ Export of {collection} failed: {e}", exc_info=True)
        return jsonify({'error': str(e)}), 500


@bp.route('/list-cocktails')
def list_cocktails():
    """Flattened cocktail rows with comma-joined tags."""
    return _export('cocktails')


@bp.route('/list-ingredients')
def list_ingredients():
    """Flattened ingredient rows with comma-joined tags."""
    return _export('ingredients')
