"""Blueprint registration."""

BATCH_PREFIX = '/api/admin/batch'


def register_blueprints(app):
    """Register all route blueprints."""
    from .admin_batch import bp as admin_batch_bp
    from .jobs import bp as jobs_bp

    app.register_blueprint(admin_batch_bp, url_prefix=BATCH_PREFIX)
    app.register_blueprint(jobs_bp, url_prefix=BATCH_PREFIX)
