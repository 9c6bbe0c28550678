"""
Pytest configuration and shared fixtures for test suite

Provides Flask app, database, and client fixtures for testing.
"""
import os
import sys
from datetime import datetime
from pathlib import Path

import pytest

# Add parent directory to path so we can import app modules
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment BEFORE importing app
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SCHEDULER_ENABLED"] = "false"

# Import app and models AFTER setting environment
import app as app_module  # noqa: E402
from models import Service, Title  # noqa: E402
from models import db as _db  # noqa: E402


@pytest.fixture(scope="function")
def app():
    """
    Create Flask app configured for testing

    Uses in-memory SQLite database that's reset between tests.
    """
    flask_app = app_module.app
    flask_app.config["TESTING"] = True

    with flask_app.app_context():
        _db.create_all()
        yield flask_app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope="function")
def client(app):
    """
    Flask test client for making HTTP requests
    """
    return app.test_client()


@pytest.fixture(scope="function")
def db(app):
    """
    Database fixture with app context

    Provides access to db.session for direct database operations.
    """
    with app.app_context():
        yield _db


@pytest.fixture
def services(app):
    """Seed the default streaming services"""
    Service.seed_defaults()
    return Service.query.order_by(Service.id).all()


@pytest.fixture
def make_title(app):
    """Factory for titles; resolved (has a JustWatch ID) unless told otherwise"""

    def _make_title(name, last_checked=None, justwatch_id="tm100", full_path=None, type="movie", **kwargs):
        title = Title(
            name=name,
            type=type,
            justwatch_id=justwatch_id,
            full_path=full_path,
            last_checked=last_checked,
            created_at=kwargs.pop("created_at", datetime(2024, 1, 1)),
            **kwargs,
        )
        _db.session.add(title)
        _db.session.commit()
        return title

    return _make_title
