"""
Inbox API response models.
Serialize to the camelCase wire format via field aliases; routes build them
from domain records with the from_* helpers.
"""

import math
from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from app.models.domain.inbox_domain import (
    Contact,
    Conversation,
    IngestionResult,
    Message,
    User,
)

T = TypeVar("T")


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class MessageIngestionResponse(_WireModel):
    """Response for POST /api/messages/{channel}"""

    message_id: str = Field(..., alias="messageId")
    conversation_id: str = Field(..., alias="conversationId")
    contact_id: str = Field(..., alias="contactId")
    priority: int = Field(..., ge=0, le=100)

    @classmethod
    def from_result(cls, result: IngestionResult) -> "MessageIngestionResponse":
        return cls(
            message_id=result.message_id,
            conversation_id=result.conversation_id,
            contact_id=result.contact_id,
            priority=result.priority,
        )


class UserResponse(_WireModel):
    id: str
    email: str
    name: str
    created_at: datetime = Field(..., alias="createdAt")

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(id=user.id, email=user.email, name=user.name, created_at=user.created_at)


class ContactSummary(_WireModel):
    id: str
    name: str
    email: str | None = None
    priority: int | None = None

    @classmethod
    def from_contact(
        cls, contact: Contact | None, include_priority: bool = False
    ) -> "ContactSummary":
        if contact is None:
            return cls(id="", name="Unknown", email="")
        return cls(
            id=contact.id,
            name=contact.name,
            email=contact.email,
            priority=contact.priority if include_priority else None,
        )


class ConversationListItem(_WireModel):
    id: str
    external_id: str = Field(..., alias="externalId")
    source: str
    title: str
    priority: int
    last_message_at: datetime = Field(..., alias="lastMessageAt")
    contact: ContactSummary
    message_count: int = Field(..., alias="messageCount")
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")

    @classmethod
    def build(
        cls,
        conversation: Conversation,
        contact: Contact | None,
        priority: int,
        message_count: int,
    ) -> "ConversationListItem":
        return cls(
            id=conversation.id,
            external_id=conversation.external_id,
            source=conversation.channel,
            title=conversation.title,
            priority=priority,
            last_message_at=conversation.last_message_at,
            contact=ContactSummary.from_contact(contact),
            message_count=message_count,
            created_at=conversation.created_at,
            updated_at=conversation.updated_at,
        )


class MessageContact(_WireModel):
    id: str
    name: str


class MessageListItem(_WireModel):
    id: str
    source: str
    content: str
    metadata: dict[str, Any]
    contact: MessageContact
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")

    @classmethod
    def build(cls, message: Message, contact: Contact | None) -> "MessageListItem":
        summary = ContactSummary.from_contact(contact)
        return cls(
            id=message.id,
            source=message.channel,
            content=message.content,
            metadata=message.metadata,
            contact=MessageContact(id=summary.id, name=summary.name),
            created_at=message.created_at,
            updated_at=message.updated_at,
        )


class ConversationDetailResponse(ConversationListItem):
    """Response for GET /api/conversations/{id}"""

    user_id: str = Field(..., alias="userId")
    stored_priority: int = Field(..., alias="storedPriority")
    latest_message: MessageListItem | None = Field(default=None, alias="latestMessage")


class PaginationInfo(_WireModel):
    page: int
    limit: int
    total: int
    total_pages: int = Field(..., alias="totalPages")

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "PaginationInfo":
        return cls(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit))


class PaginatedResponse(_WireModel, Generic[T]):
    data: list[T]
    pagination: PaginationInfo


class ErrorBody(BaseModel):
    code: str
    message: str


class ErrorResponse(BaseModel):
    error: ErrorBody
