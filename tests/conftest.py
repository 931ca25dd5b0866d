"""
Pytest Configuration and Fixtures
=================================

Provides shared fixtures for the test suite:
- Throwaway data directory (config.yaml, huey.db, logs, backups)
- In-memory document store seeded with cocktails, ingredients and tags
- Flask test client signed in as an admin with the X-Admin-Key header

SAFETY: Nothing here touches a real data directory. BARBACK_DATA_DIR is
pointed at a temp directory before config.py is first imported.
"""

import os
import tempfile

os.environ.setdefault("BARBACK_DATA_DIR", tempfile.mkdtemp(prefix="barback-test-"))
os.environ["BARBACK_JOBS_IMMEDIATE"] = "1"
os.environ.setdefault("ADMIN_API_KEY", "test-key")

import pytest


ADMIN_KEY = "test-key"
ADMIN_USER = {"id": "admin-1", "role": "admin"}


# =============================================================================
# Fixtures
# =============================================================================

def seed_documents():
    """Small catalogue used by most tests."""
    return {
        "ingredients": {
            "ing-lime": {"name": "Lime", "description": "Imported ingredient: lime", "tags": ["citrus", "stale"]},
            "ing-mint": {"name": "Mint", "description": "Fresh mint leaves", "tags": ["herb"]},
            "ing-gin": {"name": "Gin", "description": "", "tags": ["spirit", "stale"]},
            "ing-rum": {"name": "Rum", "tags": ["spirit"]},
        },
        "cocktails": {
            "ck-mojito": {"name": "Mojito", "description": "Rum, mint and lime", "tags": ["classic"]},
            "ck-gimlet": {"name": "Gimlet", "description": "Gin and lime", "tags": ["classic", "sour"]},
        },
        "tags": {
            "tag-classic": {"name": "classic", "usageCount": 2},
            "tag-sour": {"name": "sour", "usageCount": 1},
        },
        "cocktail_tags": {
            "l1": {"cocktailId": "ck-mojito", "tagId": "tag-classic"},
            "l2": {"cocktailId": "ck-gimlet", "tagId": "tag-classic"},
            "l3": {"cocktailId": "ck-gimlet", "tagId": "tag-sour"},
        },
    }


@pytest.fixture
def store():
    """Process-wide in-memory store, reset after each test."""
    from doc_store import MemoryDocumentStore, set_store

    mem = MemoryDocumentStore(seed_documents())
    set_store(mem)
    yield mem
    set_store(None)


@pytest.fixture
def backups_dir(tmp_path, monkeypatch):
    """Redirect batch snapshots into the test's tmp_path."""
    import panel.jobs.runner as runner

    path = tmp_path / "backups"
    monkeypatch.setattr(runner, "get_backups_dir", lambda: path)
    return path


@pytest.fixture
def admin_key():
    """The X-Admin-Key value the test app is configured with."""
    return ADMIN_KEY


@pytest.fixture
def admin_user():
    """A fresh session user dict with the admin role."""
    return dict(ADMIN_USER)


@pytest.fixture
def app(store, backups_dir):
    from panel.app import create_app
    from panel.jobs import huey

    huey.immediate = True
    app = create_app(overrides={
        "TESTING": True,
        "SECRET_KEY": "test-secret",
        "ADMIN_API_KEY": ADMIN_KEY,
    })
    return app


@pytest.fixture
def client(app):
    """Test client signed in as an admin and sending the admin key."""
    client = app.test_client()
    with client.session_transaction() as sess:
        sess["user"] = dict(ADMIN_USER)
    client.environ_base["HTTP_X_ADMIN_KEY"] = ADMIN_KEY
    return client


# =============================================================================
# Test Markers
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "readonly: marks test as read-only (no store writes)"
    )
    config.addinivalue_line(
        "markers", "creates_data: marks test as writing documents, jobs or backups"
    )
