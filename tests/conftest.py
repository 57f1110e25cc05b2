"""
Shared test fixtures and configuration.
"""

import pytest
from unittest.mock import AsyncMock, Mock

from medifly.models.domain import DoctorResult, HospitalResult
from medifly.services.search_service import SearchService
from medifly.services.webhook_client import WebhookClient
from medifly.services.conversation_service import ConversationController

FIXED_TIMESTAMP = "2026-01-01T08:22:00+00:00"


@pytest.fixture
def make_hospital():
    """Factory for hospital results with chosen similarity and rating."""

    def _make(id: str, similarity: float = 80, rating: float = 4.0, **fields):
        return HospitalResult(
            id=id,
            name=fields.pop("name", f"Hospital {id}"),
            similarity=similarity,
            rating=rating,
            **fields,
        )

    return _make


@pytest.fixture
def make_doctor():
    """Factory for doctor results."""

    def _make(id: str, similarity: float = 80, rating: float = 4.0, **fields):
        return DoctorResult(
            id=id,
            name=fields.pop("name", f"Dr. {id}"),
            similarity=similarity,
            rating=rating,
            **fields,
        )

    return _make


@pytest.fixture
def hospital_results(make_hospital):
    """Three hospitals in Malaysia."""
    return [
        make_hospital("h1", similarity=91, rating=4.5, name="Gleneagles Penang", country="Malaysia"),
        make_hospital("h2", similarity=87, rating=4.8, name="Prince Court", country="Malaysia"),
        make_hospital("h3", similarity=75, rating=4.1, name="Sunway Medical", country="Malaysia"),
    ]


@pytest.fixture
def search_client(hospital_results):
    """Mock SearchClient returning the hospital results."""
    client = Mock()
    client.search = AsyncMock(return_value=hospital_results)
    return client


@pytest.fixture
def search_service(search_client):
    return SearchService(search_client, threshold=0.5, limit=12)


@pytest.fixture
def webhook_client():
    """Mock webhook client; Mock(spec=...) turns its async methods into AsyncMocks."""
    return Mock(spec=WebhookClient)


@pytest.fixture
def navigator():
    return Mock()


@pytest.fixture
def controller(search_service, webhook_client, navigator):
    """Controller wired to mocked backends with a fixed clock."""
    return ConversationController(
        search_service=search_service,
        webhook_client=webhook_client,
        navigator=navigator,
        clock=lambda: FIXED_TIMESTAMP,
        session_id="test-session",
    )
