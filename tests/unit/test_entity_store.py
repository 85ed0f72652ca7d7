from datetime import timedelta

import pytest

from app.services import entity_store as entity_store_module


def _conversation(store, user, contact, external_id, channel="email", title="Thread"):
    conversation, _ = store.find_or_create_conversation(
        user_id=user.id,
        contact_id=contact.id,
        external_id=external_id,
        channel=channel,
        title=title,
    )
    return conversation


@pytest.fixture
def contact(store, user):
    return store.find_or_create_contact(user.id, "Alice@Example.com", "Alice", "email")


def test_create_user_keeps_email_as_given(store):
    """Test that user email is stored as given and looked up lower-cased."""
    user = store.create_user(email="Mixed@Case.com", name="Mixed")

    assert user.email == "Mixed@Case.com"
    assert store.find_user_by_email("mixed@case.com") is user
    assert store.get_user(user.id) is user


def test_create_user_rejects_duplicate_id(store, user):
    """Test that a reused user id raises."""
    with pytest.raises(ValueError):
        store.create_user(email="other@example.com", name="Other", user_id=user.id)


def test_create_user_rejects_duplicate_email_ignoring_case(store, user):
    """Test that a reused email raises regardless of case."""
    with pytest.raises(ValueError, match="email"):
        store.create_user(email="owner@EXAMPLE.com", name="Impostor")

    assert store.find_user_by_email("owner@example.com") is user


def test_contact_is_deduplicated_by_lowercased_email(store, user, contact):
    """Test contact dedup by lower-cased email across channels."""
    again = store.find_or_create_contact(user.id, "ALICE@example.com", "Alice B.", "slack", 90)

    assert again is contact
    assert contact.email == "alice@example.com"
    assert contact.channel == "email"
    assert contact.priority == 50
    assert store.stats()["contacts"] == 1


def test_contacts_are_scoped_per_user(store, user, contact):
    """The same email under two users is two contacts."""
    other_user = store.create_user(email="second@example.com", name="Second")
    other = store.find_or_create_contact(other_user.id, "alice@example.com", "Alice", "email")

    assert other.id != contact.id


def test_conversation_find_or_create_reports_new(store, user, contact):
    """Test that find-or-create reports whether the conversation is new."""
    first, is_new = store.find_or_create_conversation(
        user.id, contact.id, "thread-1", "email", "Hello"
    )
    second, is_new_again = store.find_or_create_conversation(
        user.id, contact.id, "thread-1", "email", "Different title"
    )

    assert is_new is True
    assert is_new_again is False
    assert second is first
    assert first.title == "Hello"
    assert first.priority == 50


def test_same_external_id_on_another_channel_is_a_new_conversation(store, user, contact):
    """Conversation identity includes the channel."""
    email_conv = _conversation(store, user, contact, "shared-id", channel="email")
    slack_conv = _conversation(store, user, contact, "shared-id", channel="slack")

    assert email_conv.id != slack_conv.id


def test_conversations_sorted_by_priority_then_newest(store, user, contact, fixed_now):
    """Test ordering by priority, then newest first."""
    older = _conversation(store, user, contact, "older")
    newer = _conversation(store, user, contact, "newer")
    top = _conversation(store, user, contact, "top")
    older.created_at = fixed_now - timedelta(hours=2)
    newer.created_at = fixed_now - timedelta(hours=1)
    store.update_conversation_priority(top.id, 90, fixed_now)

    conversations, total = store.get_conversations_for_user(user.id)

    assert total == 3
    assert [c.id for c in conversations] == [top.id, newer.id, older.id]


def test_conversation_listing_filters_by_channel(store, user, contact):
    """Test the channel filter on conversation listing."""
    _conversation(store, user, contact, "e-1", channel="email")
    slack = _conversation(store, user, contact, "s-1", channel="slack")

    conversations, total = store.get_conversations_for_user(user.id, channel="slack")

    assert total == 1
    assert conversations[0].id == slack.id


def test_pagination_clamps_page_and_limit(store, user, contact, monkeypatch):
    """Test that out-of-range page and limit are clamped."""
    monkeypatch.setattr(entity_store_module.settings, "MAX_PAGE_SIZE", 3)
    for i in range(5):
        _conversation(store, user, contact, f"thread-{i}")

    page, total = store.get_conversations_for_user(user.id, page=0, limit=50)
    assert total == 5
    assert len(page) == 3

    page, _ = store.get_conversations_for_user(user.id, page=2, limit=0)
    assert len(page) == 1

    page, _ = store.get_conversations_for_user(user.id, page=10, limit=3)
    assert page == []


def test_messages_returned_oldest_first(store, user, contact, fixed_now):
    """Test chronological message listing."""
    conversation = _conversation(store, user, contact, "thread")
    store.create_message(conversation.id, "m-2", "email", "second", created_at=fixed_now)
    store.create_message(
        conversation.id, "m-1", "email", "first", created_at=fixed_now - timedelta(hours=1)
    )

    messages, total = store.get_messages_for_conversation(conversation.id)

    assert total == 2
    assert [m.content for m in messages] == ["first", "second"]
    assert store.get_latest_message_for_conversation(conversation.id).content == "second"
    assert store.get_message_count_for_conversation(conversation.id) == 2
    assert store.find_message_by_external_id("m-1").content == "first"


def test_mutations_emit_events(store, user, contact, event_bus, fixed_now):
    """Test that store mutations publish change events."""
    received = []
    event_bus.subscribe(received.append)

    conversation = _conversation(store, user, contact, "thread")
    message = store.create_message(conversation.id, "m-1", "email", "hi", created_at=fixed_now)
    store.update_conversation_priority(conversation.id, 70, fixed_now)

    assert [e.type for e in received] == [
        "conversation:new",
        "message:new",
        "conversation:updated",
    ]
    assert received[0].priority == 50
    assert received[1].message_id == message.id
    assert received[2].priority == 70
    assert all(e.user_id == user.id for e in received)


def test_update_priority_for_missing_conversation_returns_none(store, fixed_now):
    """Test priority update for an unknown conversation."""
    assert store.update_conversation_priority("missing", 10, fixed_now) is None


def test_recalculate_priorities_uses_latest_message(store, user, contact, fixed_now):
    """Test that rescoring uses each conversation's latest message."""
    conversation = _conversation(store, user, contact, "thread")
    empty = _conversation(store, user, contact, "empty")
    store.create_message(
        conversation.id, "m-1", "email", "old", created_at=fixed_now - timedelta(hours=3)
    )
    store.create_message(conversation.id, "m-2", "email", "new", created_at=fixed_now)

    seen = []

    def calculate(context):
        seen.append(context.content)
        return 42

    updated = store.recalculate_priorities(calculate)

    assert updated == 1
    assert seen == ["new"]
    assert conversation.priority == 42
    assert conversation.last_message_at == fixed_now
    assert empty.priority == 50
