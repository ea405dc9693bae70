"""
Global pytest Configuration and Fixture Definitions

Shared fixtures for the zoo portal test suite: the Flask application built
with the testing configuration, a test client, deterministic clocks and
sleepers for the rate limiter and catalog client, and ready-made guard and
store collaborators for SubmissionController tests.

Author: Zoo Portal Team
Version: 1.0.0
"""

from typing import Any, Dict, List, Optional

import pytest
from flask import Flask
from flask.testing import FlaskClient

from zoo_portal.app import create_app
from zoo_portal.auth.csrf import CSRFGuard, InMemorySessionStorage
from zoo_portal.auth.rate_limiting import RateLimiterRegistry
from zoo_portal.business.feedback import CollectingFeedbackSink
from zoo_portal.business.services import SubmissionController
from zoo_portal.data.storage import CatalogStore, InMemoryCollectionStore


# ============================================================================
# Deterministic time
# ============================================================================

class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleeper:
    """Async sleep replacement that records delays and advances ``clock`` instead of waiting."""

    def __init__(self, clock: Optional[FakeClock] = None) -> None:
        self.clock = clock
        self.delays: List[float] = []

    async def sleep(self, seconds: float) -> None:
        self.delays.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeper(fake_clock: FakeClock) -> RecordingSleeper:
    return RecordingSleeper(fake_clock)


@pytest.fixture
def limits_clock(fake_clock: FakeClock, mocker) -> FakeClock:
    """Makes the in-memory ``limits`` storage stamp and expire entries on ``fake_clock``."""
    mocker.patch('limits.storage.memory.time', mocker.Mock(time=fake_clock))
    return fake_clock


# ============================================================================
# Flask application
# ============================================================================

@pytest.fixture
def app() -> Flask:
    """Application built with the testing configuration and the bundled catalog."""
    return create_app('testing')


@pytest.fixture
def client(app: Flask) -> FlaskClient:
    return app.test_client()


@pytest.fixture
def csrf_token(client: FlaskClient) -> str:
    """Token issued to the test client's session."""
    response = client.get('/forms/csrf-token')
    assert response.status_code == 200
    return response.get_json()['csrfToken']


# ============================================================================
# Submission collaborators
# ============================================================================

@pytest.fixture
def session_storage() -> InMemorySessionStorage:
    return InMemorySessionStorage()


@pytest.fixture
def csrf_guard(session_storage: InMemorySessionStorage) -> CSRFGuard:
    return CSRFGuard(session_storage, token_factory=lambda: 'session-token-123')


@pytest.fixture
def rate_limiters(limits_clock: FakeClock) -> RateLimiterRegistry:
    return RateLimiterRegistry(max_attempts=5, window_seconds=10, clock=limits_clock)


@pytest.fixture
def collections() -> InMemoryCollectionStore:
    return InMemoryCollectionStore()


@pytest.fixture
def catalog() -> CatalogStore:
    return CatalogStore()


@pytest.fixture
def feedback() -> CollectingFeedbackSink:
    return CollectingFeedbackSink()


@pytest.fixture
def controller(csrf_guard, rate_limiters, collections, catalog, feedback) -> SubmissionController:
    """Controller whose session already holds ``session-token-123``."""
    csrf_guard.issue()
    return SubmissionController(
        csrf_guard=csrf_guard,
        rate_limiters=rate_limiters,
        collections=collections,
        catalog=catalog,
        feedback=feedback,
        clock=lambda: 1700000000.0
    )


# ============================================================================
# Sample payloads
# ============================================================================

@pytest.fixture
def booking_fields() -> Dict[str, Any]:
    return {
        'visitorName': 'Ada Lovelace',
        'contact': '(555) 234-5678',
        'animal': 'Ellie Elephant',
        'dateTime': '2024-06-01T10:30',
        'groupSize': '3',
    }


@pytest.fixture
def membership_fields() -> Dict[str, Any]:
    return {
        'name': 'Grace Hopper',
        'email': 'grace@navy-history.org',
        'membershipType': 'Family',
        'startDate': '2024-07-01',
        'emergencyContact': '1-555-234-9876',
    }


@pytest.fixture
def animal_fields() -> Dict[str, Any]:
    return {
        'animalName': 'Kiki Koala',
        'animalSpecies': 'Koala',
        'animalStatus': 'open',
        'animalHealth': 'healthy',
        'animalImage': 'images/kiki.png',
        'animalLat': '-27.47',
        'animalLng': '153.02',
    }
