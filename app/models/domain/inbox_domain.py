"""
Inbox Domain Models
Entity records for the inbox priority engine: users, contacts,
conversations, messages, and the change events emitted when they move.

These are plain dataclasses owned by the EntityStore. API models in
app/models/api convert them to the camelCase wire format.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal, get_args

Channel = Literal["email", "slack", "whatsapp", "linkedin"]
CHANNELS: tuple[str, ...] = get_args(Channel)

EventType = Literal["conversation:new", "conversation:updated", "message:new"]


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class User:
    """End user who owns contacts and conversations."""

    id: str
    email: str
    name: str
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)


@dataclass(slots=True)
class Contact:
    """A person a user communicates with, scoped to that user."""

    id: str
    user_id: str
    email: str  # stored lower-case
    name: str
    channel: Channel
    priority: int  # 0-100 base signal, set once at creation
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)


@dataclass(slots=True)
class Conversation:
    """One external thread/channel/chat between a user and one contact."""

    id: str
    external_id: str
    user_id: str
    contact_id: str
    channel: Channel
    title: str
    priority: int
    last_message_at: datetime
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)


@dataclass(slots=True)
class Message:
    """Immutable message. The owning contact is derived via the conversation."""

    id: str
    external_id: str
    conversation_id: str
    channel: Channel
    content: str
    metadata: dict[str, Any]
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)


@dataclass(slots=True, frozen=True)
class InboxEvent:
    """Change notification delivered through the EventBus."""

    type: EventType
    conversation_id: str
    user_id: str
    priority: int | None = None
    message_id: str | None = None

    def payload(self) -> dict[str, Any]:
        """Wire payload; optional fields are omitted when unset."""
        data: dict[str, Any] = {
            "conversationId": self.conversation_id,
            "userId": self.user_id,
        }
        if self.priority is not None:
            data["priority"] = self.priority
        if self.message_id is not None:
            data["messageId"] = self.message_id
        return data


@dataclass(slots=True)
class PriorityContext:
    """Inputs to a single priority calculation."""

    channel: Channel
    content: str
    last_message_at: datetime
    contact_priority: int
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class PrioritySignals:
    """Raw (un-normalized) signal values, kept for transparency."""

    contact_priority: float
    urgency_keywords: float
    recency: float
    response_expectation: float
    provider_boost: float


@dataclass(slots=True)
class IngestionResult:
    """Outcome of a successfully ingested message."""

    message_id: str
    conversation_id: str
    contact_id: str
    priority: int
