import os

os.environ.setdefault("ENVIRONMENT", "test")

from datetime import UTC, datetime, timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.main import create_app  # noqa: E402
from app.services.entity_store import EntityStore  # noqa: E402
from app.services.event_bus import EventBus  # noqa: E402
from app.services.ingestion_service import IngestionService  # noqa: E402

FIXED_NOW = datetime(2025, 3, 10, 12, 0, tzinfo=UTC)


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def store(event_bus):
    return EntityStore(event_bus)


@pytest.fixture
def user(store):
    return store.create_user(email="Owner@Example.com", name="Inbox Owner", user_id="user-1")


@pytest.fixture
def ingestion_service(store):
    return IngestionService(store)


@pytest.fixture
def client():
    app = create_app(seed=False)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def api_user(client):
    response = client.post(
        "/api/users", json={"id": "user-1", "email": "owner@example.com", "name": "Inbox Owner"}
    )
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def email_payload():
    """Build a valid email ingestion body; keyword overrides replace top-level keys."""

    def _build(**overrides):
        payload = {
            "userId": "user-1",
            "externalMessageId": "email-msg-1",
            "externalConversationId": "email-thread-1",
            "from": {"email": "alice@example.com", "name": "Alice"},
            "subject": "Quarterly numbers",
            "body": "Here are the numbers you asked for.",
            "receivedAt": (datetime.now(UTC) - timedelta(minutes=30)).isoformat(),
            "metadata": {"importance": "normal"},
        }
        payload.update(overrides)
        return payload

    return _build
