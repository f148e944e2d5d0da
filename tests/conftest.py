"""Pytest configuration and fixtures."""

import pytest

from app import create_app
from config import ChallengeSettings
from content import ChallengeContent
from fakes import FakeIdentity, FakeStore
from models import db
from tracker import ProgressTracker

APP_ID = "test-app"


@pytest.fixture
def settings():
    return ChallengeSettings(year=2025, month=10, day_count=31, max_declaration_count=5)


@pytest.fixture
def identity():
    return FakeIdentity(uid="user-1")


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def make_tracker(identity, store, settings):
    """Build and start trackers; every tracker is closed after the test."""
    trackers = []

    def _make(**overrides):
        kwargs = {
            "identity": identity,
            "store": store,
            "settings": settings,
            "app_id": APP_ID,
        }
        kwargs.update(overrides)
        tracker = ProgressTracker(**kwargs).start()
        trackers.append(tracker)
        return tracker

    yield _make
    for tracker in trackers:
        tracker.close()


@pytest.fixture
def tracker(make_tracker):
    return make_tracker()


@pytest.fixture
def environ(tmp_path):
    return {
        "CHALLENGE_API_KEY": "test-api-key",
        "SECRET_KEY": "test-secret",
        "DATABASE_URL": f"sqlite:///{tmp_path / 'challenge.db'}",
    }


@pytest.fixture
def app(environ):
    app = create_app(environ=environ, content=ChallengeContent())
    app.config["TESTING"] = True
    yield app
    with app.app_context():
        db.session.remove()
        db.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def registered_client(client):
    response = client.post("/register", json={"display_name": "Hana", "group_name": "Abraham"})
    assert response.status_code == 200
    return client
