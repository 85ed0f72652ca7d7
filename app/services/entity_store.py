"""
In-memory entity store for users, contacts, conversations and messages.

The store owns the canonical records plus the dedup indexes:
- contacts by (user_id, lower-cased email)
- conversations by (user_id, channel, external_id)
- messages by external_id (global)
- message ids per conversation

Every insert updates the primary map and its indexes together. There is no
delete path, so indexes never need eviction.

Mutations that other parts of the system care about are published on the
EventBus: conversation:new, conversation:updated, message:new.

`lock` is re-entrant; callers that need a read-check-write sequence to be
atomic (dedup-then-insert) hold it across the sequence.
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Any

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.inbox_domain import (
    Channel,
    Contact,
    Conversation,
    InboxEvent,
    Message,
    PriorityContext,
    User,
    utc_now,
)
from app.services.event_bus import EventBus

logger = get_logger(__name__)

PriorityCalculator = Callable[[PriorityContext], int]


def _new_id() -> str:
    return str(uuid.uuid4())


def clamp_page(page: int | None) -> int:
    return max(1, page or 1)


def clamp_limit(limit: int | None, default: int) -> int:
    if limit is None:
        limit = default
    return max(1, min(limit, settings.MAX_PAGE_SIZE))


def _paginate(items: list, page: int, limit: int) -> list:
    start = (page - 1) * limit
    return items[start : start + limit]


class EntityStore:
    def __init__(self, events: EventBus | None = None) -> None:
        self.events = events or EventBus()
        self.lock = threading.RLock()

        self._users: dict[str, User] = {}
        self._contacts: dict[str, Contact] = {}
        self._conversations: dict[str, Conversation] = {}
        self._messages: dict[str, Message] = {}

        self._users_by_email: dict[str, User] = {}
        self._contacts_by_user_email: dict[tuple[str, str], Contact] = {}
        self._conversations_by_key: dict[tuple[str, str, str], Conversation] = {}
        self._messages_by_external_id: dict[str, Message] = {}
        self._message_ids_by_conversation: dict[str, list[str]] = {}

    # =========================================================================
    # Users
    # =========================================================================

    def get_user(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    def find_user_by_email(self, email: str) -> User | None:
        return self._users_by_email.get(email.lower())

    def create_user(self, email: str, name: str, user_id: str | None = None) -> User:
        """
        Create a user. Email is compared lower-cased but stored as given.

        Raises:
            ValueError: The id or (case-insensitively) the email is taken
        """
        with self.lock:
            user_id = user_id or _new_id()
            if user_id in self._users:
                raise ValueError(f"User with id {user_id} already exists")
            if self.find_user_by_email(email):
                raise ValueError(f"User with email {email} already exists")

            user = User(id=user_id, email=email, name=name)
            self._users[user.id] = user
            self._users_by_email[email.lower()] = user

        logger.info("User created", user_id=user.id)
        return user

    # =========================================================================
    # Contacts
    # =========================================================================

    def get_contact(self, contact_id: str) -> Contact | None:
        return self._contacts.get(contact_id)

    def find_contact_by_user_and_email(self, user_id: str, email: str) -> Contact | None:
        return self._contacts_by_user_email.get((user_id, email.lower()))

    def find_or_create_contact(
        self,
        user_id: str,
        email: str,
        name: str,
        channel: Channel,
        priority: int | None = None,
    ) -> Contact:
        """
        Return the contact for (user_id, email), creating it on first sight.

        An existing contact is returned untouched: name, channel and priority
        are only set at creation.
        """
        with self.lock:
            existing = self.find_contact_by_user_and_email(user_id, email)
            if existing:
                return existing

            contact = Contact(
                id=_new_id(),
                user_id=user_id,
                email=email.lower(),
                name=name,
                channel=channel,
                priority=(
                    settings.DEFAULT_CONTACT_PRIORITY if priority is None else priority
                ),
            )
            self._contacts[contact.id] = contact
            self._contacts_by_user_email[(user_id, contact.email)] = contact

        logger.info(
            "Contact created",
            user_id=user_id,
            contact_id=contact.id,
            channel=channel,
            priority=contact.priority,
        )
        return contact

    # =========================================================================
    # Conversations
    # =========================================================================

    def get_conversation(self, conversation_id: str) -> Conversation | None:
        return self._conversations.get(conversation_id)

    def find_conversation(
        self, user_id: str, channel: Channel, external_id: str
    ) -> Conversation | None:
        return self._conversations_by_key.get((user_id, channel, external_id))

    def find_or_create_conversation(
        self,
        user_id: str,
        contact_id: str,
        external_id: str,
        channel: Channel,
        title: str,
    ) -> tuple[Conversation, bool]:
        """
        Return (conversation, is_new) for (user_id, channel, external_id).

        Identity is first-write-wins: an existing conversation keeps its
        title and contact.
        """
        with self.lock:
            existing = self.find_conversation(user_id, channel, external_id)
            if existing:
                return existing, False

            now = utc_now()
            conversation = Conversation(
                id=_new_id(),
                external_id=external_id,
                user_id=user_id,
                contact_id=contact_id,
                channel=channel,
                title=title,
                priority=settings.DEFAULT_CONVERSATION_PRIORITY,
                last_message_at=now,
                created_at=now,
                updated_at=now,
            )
            self._conversations[conversation.id] = conversation
            self._conversations_by_key[(user_id, channel, external_id)] = conversation
            self._message_ids_by_conversation[conversation.id] = []

        logger.info(
            "Conversation created",
            user_id=user_id,
            conversation_id=conversation.id,
            channel=channel,
        )
        self.events.emit(
            InboxEvent(
                type="conversation:new",
                conversation_id=conversation.id,
                user_id=user_id,
                priority=conversation.priority,
            )
        )
        return conversation, True

    def update_conversation_priority(
        self, conversation_id: str, priority: int, last_message_at: datetime
    ) -> Conversation | None:
        with self.lock:
            conversation = self._conversations.get(conversation_id)
            if not conversation:
                return None

            conversation.priority = priority
            conversation.last_message_at = last_message_at
            conversation.updated_at = utc_now()

        self.events.emit(
            InboxEvent(
                type="conversation:updated",
                conversation_id=conversation.id,
                user_id=conversation.user_id,
                priority=priority,
            )
        )
        return conversation

    def get_conversations_for_user(
        self,
        user_id: str,
        page: int | None = 1,
        limit: int | None = None,
        channel: Channel | None = None,
    ) -> tuple[list[Conversation], int]:
        """
        Conversations for a user, most urgent first.

        Sorted by priority DESC, then created_at DESC (newest first on ties).
        """
        page = clamp_page(page)
        limit = clamp_limit(limit, settings.DEFAULT_CONVERSATION_PAGE_SIZE)

        with self.lock:
            conversations = [
                c
                for c in self._conversations.values()
                if c.user_id == user_id and (channel is None or c.channel == channel)
            ]

        conversations.sort(key=lambda c: (c.priority, c.created_at), reverse=True)
        return _paginate(conversations, page, limit), len(conversations)

    # =========================================================================
    # Messages
    # =========================================================================

    def get_message(self, message_id: str) -> Message | None:
        return self._messages.get(message_id)

    def find_message_by_external_id(self, external_id: str) -> Message | None:
        return self._messages_by_external_id.get(external_id)

    def create_message(
        self,
        conversation_id: str,
        external_id: str,
        channel: Channel,
        content: str,
        metadata: dict[str, Any] | None = None,
        created_at: datetime | None = None,
    ) -> Message:
        """
        Insert a message unconditionally.

        Callers must check find_message_by_external_id first (under `lock`);
        inserting a duplicate external_id would repoint the dedup index.
        """
        with self.lock:
            message = Message(
                id=_new_id(),
                external_id=external_id,
                conversation_id=conversation_id,
                channel=channel,
                content=content,
                metadata=dict(metadata or {}),
                created_at=created_at or utc_now(),
            )
            self._messages[message.id] = message
            self._messages_by_external_id[external_id] = message
            self._message_ids_by_conversation.setdefault(conversation_id, []).append(message.id)
            conversation = self._conversations.get(conversation_id)

        if conversation:
            self.events.emit(
                InboxEvent(
                    type="message:new",
                    conversation_id=conversation.id,
                    user_id=conversation.user_id,
                    message_id=message.id,
                )
            )
        return message

    def _conversation_messages(self, conversation_id: str) -> list[Message]:
        ids = self._message_ids_by_conversation.get(conversation_id, [])
        return [self._messages[message_id] for message_id in ids]

    def get_messages_for_conversation(
        self, conversation_id: str, page: int | None = 1, limit: int | None = None
    ) -> tuple[list[Message], int]:
        """Messages in chronological order (oldest first)."""
        page = clamp_page(page)
        limit = clamp_limit(limit, settings.DEFAULT_MESSAGE_PAGE_SIZE)

        with self.lock:
            messages = self._conversation_messages(conversation_id)

        messages.sort(key=lambda m: m.created_at)
        return _paginate(messages, page, limit), len(messages)

    def get_message_count_for_conversation(self, conversation_id: str) -> int:
        return len(self._message_ids_by_conversation.get(conversation_id, []))

    def get_latest_message_for_conversation(self, conversation_id: str) -> Message | None:
        with self.lock:
            messages = self._conversation_messages(conversation_id)
        return max(messages, key=lambda m: m.created_at, default=None)

    # =========================================================================
    # Maintenance
    # =========================================================================

    def recalculate_priorities(self, calculate: PriorityCalculator) -> int:
        """
        Recompute every conversation's priority from its latest message.

        Returns:
            Number of conversations updated
        """
        updated = 0
        with self.lock:
            conversations = list(self._conversations.values())

        for conversation in conversations:
            latest = self.get_latest_message_for_conversation(conversation.id)
            contact = self.get_contact(conversation.contact_id)
            if not latest or not contact:
                continue

            priority = calculate(
                PriorityContext(
                    channel=conversation.channel,
                    content=latest.content,
                    last_message_at=latest.created_at,
                    contact_priority=contact.priority,
                    metadata=latest.metadata,
                )
            )
            self.update_conversation_priority(conversation.id, priority, latest.created_at)
            updated += 1

        logger.info("Conversation priorities recalculated", updated=updated)
        return updated

    def stats(self) -> dict[str, int]:
        return {
            "users": len(self._users),
            "contacts": len(self._contacts),
            "conversations": len(self._conversations),
            "messages": len(self._messages),
        }
