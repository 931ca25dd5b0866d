"""Flask application factory."""
import os

from flask import Flask, jsonify

from config import get_batch_config, get_panel_config, get_rate_limit_config, load_admin_api_key, load_secret_key
from panel.rate_limit import EXTENSION_KEY, SlidingWindowLimiter


def create_app(overrides=None):
    """Create and configure the Flask application."""
    app = Flask(__name__)

    app.config['SECRET_KEY'] = load_secret_key() or os.urandom(24).hex()
    app.config['ADMIN_API_KEY'] = load_admin_api_key()
    app.config['ADMIN_ROLE'] = get_panel_config()['admin_role']
    app.config['JOBS_LIST_LIMIT'] = get_batch_config()['jobs_list_limit']

    limits = get_rate_limit_config()
    app.config['BATCH_REQUESTS_PER_MINUTE'] = limits['batch_requests_per_minute']
    app.config['RATE_LIMIT_WINDOW_SECONDS'] = limits['window_seconds']

    if overrides:
        app.config.update(overrides)

    app.extensions[EXTENSION_KEY] = SlidingWindowLimiter(
        app.config['BATCH_REQUESTS_PER_MINUTE'],
        app.config['RATE_LIMIT_WINDOW_SECONDS'],
    )

    @app.route('/api/health')
    def health():
        """Liveness check (no auth)."""
        return jsonify({'status': 'ok'})

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({'error': 'Not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({'error': 'Method not allowed'}), 405

    # Register blueprints
    from panel.routes import register_blueprints
    register_blueprints(app)

    return app


# For gunicorn: gunicorn -b 0.0.0.0:8080 'panel.app:create_app()'
