"""Admin gate for the batch endpoints.

The login flow (outside this panel) stores the signed-in user in Flask's signed
session cookie as session['user'] = {'id': ..., 'role': ...}. Batch endpoints
additionally require the shared X-Admin-Key header.
"""
import hmac

from flask import current_app, jsonify, request, session

ADMIN_KEY_HEADER = 'X-Admin-Key'


def current_user():
    """The session user dict, or None when not signed in."""
    user = session.get('user')
    return user if isinstance(user, dict) else None


def caller_key() -> str:
    """Identity used for rate limiting: session user id, else remote address."""
    user = current_user()
    if user and user.get('id'):
        return f"user:{user['id']}"
    return f"ip:{request.remote_addr or 'unknown'}"


def admin_gate():
    """before_request hook: None lets the request through, otherwise an error response."""
    user = current_user()
    if not user:
        return jsonify({'error': 'Authentication required'}), 401

    if user.get('role') != current_app.config['ADMIN_ROLE']:
        return jsonify({'error': 'Admin role required'}), 403

    expected = current_app.config.get('ADMIN_API_KEY') or ''
    provided = request.headers.get(ADMIN_KEY_HEADER, '')
    if not expected or not hmac.compare_digest(provided.encode(), expected.encode()):
        return jsonify({'error': 'Forbidden'}), 403
    return None
