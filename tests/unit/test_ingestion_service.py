from datetime import UTC, datetime, timedelta

import pytest

from app.services.channel_strategies import InboundMessage
from app.services.errors import (
    DuplicateMessageError,
    IngestionError,
    UserNotFoundError,
    ValidationError,
)
from app.services.ingestion_service import IngestionService


def _email(**overrides):
    values = {
        "user_id": "user-1",
        "external_message_id": "email-1",
        "external_conversation_id": "thread-1",
        "sender": {"email": "Alice@Example.com", "name": "Alice"},
        "content": "Can we talk about the contract?",
        "subject": "Contract",
        "received_at": datetime.now(UTC) - timedelta(minutes=5),
        "metadata": {"importance": "normal"},
    }
    values.update(overrides)
    return InboundMessage(**values)


def test_ingest_creates_contact_conversation_and_message(store, user, ingestion_service):
    """Test the first ingestion for a new sender."""
    result = ingestion_service.ingest("email", _email())

    conversation = store.get_conversation(result.conversation_id)
    contact = store.get_contact(result.contact_id)
    message = store.get_message(result.message_id)

    assert contact.email == "alice@example.com"
    assert conversation.title == "Contract"
    assert conversation.contact_id == contact.id
    assert conversation.priority == result.priority
    assert message.conversation_id == conversation.id
    assert message.content == "Can we talk about the contract?"
    assert store.stats() == {"users": 1, "contacts": 1, "conversations": 1, "messages": 1}


def test_duplicate_external_message_id_is_rejected_without_changes(
    store, user, ingestion_service
):
    """A duplicate is rejected before anything is written."""
    first = ingestion_service.ingest("email", _email())
    before = store.get_conversation(first.conversation_id).priority

    with pytest.raises(DuplicateMessageError) as exc_info:
        ingestion_service.ingest("email", _email(content="urgent asap", subject="Other"))

    assert exc_info.value.existing_message_id == first.message_id
    assert store.stats()["messages"] == 1
    assert store.get_conversation(first.conversation_id).priority == before


def test_new_external_conversation_id_starts_new_conversation(store, user, ingestion_service):
    """Test that a new thread id starts a new conversation."""
    first = ingestion_service.ingest("email", _email())
    second = ingestion_service.ingest(
        "email", _email(external_message_id="email-2", external_conversation_id="thread-2")
    )

    assert first.contact_id == second.contact_id
    assert first.conversation_id != second.conversation_id


def test_same_email_across_channels_resolves_to_one_contact(store, user, ingestion_service):
    """Test cross-channel contact dedup through ingestion."""
    email = ingestion_service.ingest("email", _email())
    slack = ingestion_service.ingest(
        "slack",
        _email(
            external_message_id="slack-1",
            external_conversation_id="C123",
            sender={"email": "alice@example.com", "name": "Alice", "slackUserId": "U1"},
            subject=None,
            metadata={"isDirectMessage": True},
        ),
    )

    assert email.contact_id == slack.contact_id
    assert store.stats()["contacts"] == 1
    assert store.get_message(slack.message_id).metadata["slackUserId"] == "U1"


def test_whatsapp_without_email_uses_phone_placeholder(store, user, ingestion_service):
    """Test WhatsApp ingestion for a sender without email."""
    result = ingestion_service.ingest(
        "whatsapp",
        _email(
            external_message_id="wa-1",
            external_conversation_id="chat-1",
            sender={"name": "Bob", "phone": "+15550100"},
            subject=None,
            metadata={"isGroupChat": False},
        ),
    )

    assert store.get_contact(result.contact_id).email == "+15550100@whatsapp.placeholder"
    assert store.get_conversation(result.conversation_id).title == "WhatsApp with Bob"


def test_missing_fields_are_listed(store, user, ingestion_service):
    """Test that every missing field is named in the error."""
    with pytest.raises(ValidationError) as exc_info:
        ingestion_service.ingest(
            "email", _email(external_message_id=None, sender={"email": "a@example.com"})
        )

    assert exc_info.value.details["missing_fields"] == ["externalMessageId", "from.name"]
    assert store.stats()["messages"] == 0


def test_unknown_user_is_rejected(store, ingestion_service):
    """Test ingestion for an unknown user."""
    with pytest.raises(UserNotFoundError):
        ingestion_service.ingest("email", _email(user_id="ghost"))

    assert store.stats()["contacts"] == 0


def test_unknown_channel_is_rejected(user, ingestion_service):
    """Test ingestion for an unknown channel."""
    with pytest.raises(ValidationError):
        ingestion_service.ingest("sms", _email())


def test_received_at_defaults_to_now(store, user, ingestion_service):
    """Test that receivedAt defaults to the current time."""
    result = ingestion_service.ingest("email", _email(received_at=None))

    message = store.get_message(result.message_id)
    assert datetime.now(UTC) - message.created_at < timedelta(minutes=1)


def test_naive_received_at_is_treated_as_utc(store, user, ingestion_service):
    """Test that offset-less timestamps are read as UTC."""
    naive = datetime(2025, 1, 1, 9, 30)
    result = ingestion_service.ingest("email", _email(received_at=naive))

    conversation = store.get_conversation(result.conversation_id)
    assert conversation.last_message_at == naive.replace(tzinfo=UTC)


def test_stale_message_scores_zero(store, user, ingestion_service):
    """A message older than the inactivity threshold scores 0."""
    result = ingestion_service.ingest(
        "email", _email(received_at=datetime.now(UTC) - timedelta(days=10))
    )

    assert result.priority == 0


def test_unexpected_failure_is_wrapped(store, user):
    """Unexpected faults surface as IngestionError."""
    def broken(context):
        raise ArithmeticError("bad weights")

    service = IngestionService(store, calculate=broken)

    with pytest.raises(IngestionError) as exc_info:
        service.ingest("email", _email())

    assert exc_info.value.status_code == 500
    assert "bad weights" in exc_info.value.message


def test_ingest_publishes_events_in_order(store, user, ingestion_service, event_bus):
    """Test the event order for a new conversation."""
    received = []
    event_bus.subscribe(received.append)

    result = ingestion_service.ingest("email", _email())

    assert [e.type for e in received] == [
        "conversation:new",
        "message:new",
        "conversation:updated",
    ]
    assert received[-1].priority == result.priority
