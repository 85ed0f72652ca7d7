"""
conversations.py
----------------
Purpose:
    Read side of the inbox: prioritized conversation lists, conversation
    detail, message history, and live server-sent event streams.

Usage:
    1. GET /api/conversations?userId=... - Priority-sorted, paginated list
    2. GET /api/conversations/stream?userId=... - Inbox change stream (SSE)
    3. GET /api/conversations/{id} - Conversation detail
    4. GET /api/conversations/{id}/messages - Chronological message history
    5. GET /api/conversations/{id}/messages/stream - New messages in one conversation (SSE)

Priorities are inactivity-checked at read time: a conversation idle for
longer than INACTIVITY_THRESHOLD_DAYS reports 0 regardless of its stored value.
"""

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.api.message_response import (
    ContactSummary,
    ConversationDetailResponse,
    ConversationListItem,
    MessageListItem,
    PaginatedResponse,
    PaginationInfo,
)
from app.models.domain.inbox_domain import Conversation, InboxEvent
from app.routes.dependencies import get_event_bus, get_store
from app.services.channel_strategies import get_strategy
from app.services.entity_store import EntityStore, clamp_limit, clamp_page
from app.services.errors import ConversationNotFoundError, UserNotFoundError, ValidationError
from app.services.event_bus import EventBus
from app.services.priority_service import priority_with_inactivity_check
from app.services.streaming import SSE_HEADERS, connection_event, event_stream

router = APIRouter(prefix="/api/conversations", tags=["conversations"])
logger = get_logger(__name__)


def _require_conversation(store: EntityStore, conversation_id: str) -> Conversation:
    conversation = store.get_conversation(conversation_id)
    if not conversation:
        raise ConversationNotFoundError(conversation_id)
    return conversation


def _list_item(store: EntityStore, conversation: Conversation) -> ConversationListItem:
    return ConversationListItem.build(
        conversation,
        store.get_contact(conversation.contact_id),
        priority_with_inactivity_check(conversation.priority, conversation.last_message_at),
        store.get_message_count_for_conversation(conversation.id),
    )


@router.get(
    "",
    response_model=PaginatedResponse[ConversationListItem],
    response_model_exclude_none=True,
)
async def list_conversations(
    user_id: str | None = Query(default=None, alias="userId"),
    page: int = Query(default=1),
    limit: int = Query(default=settings.DEFAULT_CONVERSATION_PAGE_SIZE),
    channel: str | None = Query(default=None),
    source: str | None = Query(default=None),
    store: EntityStore = Depends(get_store),
):
    """
    List a user's conversations, most urgent first.

    Equal priorities are ordered newest-created first. `source` is accepted
    as an alias for `channel`.

    Raises:
        400: userId missing or unknown channel
        404: userId does not exist
    """
    if not user_id:
        raise ValidationError.missing_fields(["userId"])
    if not store.get_user(user_id):
        raise UserNotFoundError(user_id)

    channel = channel or source
    if channel:
        get_strategy(channel)

    page = clamp_page(page)
    limit = clamp_limit(limit, settings.DEFAULT_CONVERSATION_PAGE_SIZE)
    conversations, total = store.get_conversations_for_user(
        user_id, page=page, limit=limit, channel=channel
    )

    return PaginatedResponse[ConversationListItem](
        data=[_list_item(store, c) for c in conversations],
        pagination=PaginationInfo.build(page, limit, total),
    )


@router.get("/stream")
async def stream_conversations(
    request: Request,
    user_id: str | None = Query(default=None, alias="userId"),
    events: EventBus = Depends(get_event_bus),
):
    """
    Server-sent events for every inbox change, optionally filtered to one user.

    Event kinds: conversation:new, conversation:updated, message:new.
    """

    def wanted(event: InboxEvent) -> bool:
        return user_id is None or event.user_id == user_id

    logger.info("Conversation stream requested", user_id=user_id)

    return StreamingResponse(
        event_stream(
            events,
            connection_event(user_id or ""),
            request.is_disconnected,
            predicate=wanted,
            maxsize=settings.SSE_QUEUE_MAXSIZE,
            heartbeat_seconds=settings.SSE_HEARTBEAT_SECONDS,
        ),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get(
    "/{conversation_id}",
    response_model=ConversationDetailResponse,
    response_model_exclude_none=True,
)
async def get_conversation(conversation_id: str, store: EntityStore = Depends(get_store)):
    conversation = _require_conversation(store, conversation_id)
    contact = store.get_contact(conversation.contact_id)
    latest = store.get_latest_message_for_conversation(conversation.id)

    item = _list_item(store, conversation)
    return ConversationDetailResponse(
        **item.model_dump(exclude={"contact"}),
        contact=ContactSummary.from_contact(contact, include_priority=True),
        user_id=conversation.user_id,
        stored_priority=conversation.priority,
        latest_message=MessageListItem.build(latest, contact) if latest else None,
    )


@router.get(
    "/{conversation_id}/messages",
    response_model=PaginatedResponse[MessageListItem],
)
async def list_messages(
    conversation_id: str,
    page: int = Query(default=1),
    limit: int = Query(default=settings.DEFAULT_MESSAGE_PAGE_SIZE),
    store: EntityStore = Depends(get_store),
):
    """Messages in a conversation, oldest first."""
    conversation = _require_conversation(store, conversation_id)
    contact = store.get_contact(conversation.contact_id)

    page = clamp_page(page)
    limit = clamp_limit(limit, settings.DEFAULT_MESSAGE_PAGE_SIZE)
    messages, total = store.get_messages_for_conversation(
        conversation.id, page=page, limit=limit
    )

    return PaginatedResponse[MessageListItem](
        data=[MessageListItem.build(m, contact) for m in messages],
        pagination=PaginationInfo.build(page, limit, total),
    )


@router.get("/{conversation_id}/messages/stream")
async def stream_conversation_messages(
    conversation_id: str,
    request: Request,
    store: EntityStore = Depends(get_store),
):
    """Server-sent message:new events for a single conversation."""
    conversation = _require_conversation(store, conversation_id)

    def wanted(event: InboxEvent) -> bool:
        return event.type == "message:new" and event.conversation_id == conversation.id

    logger.info(
        "Message stream requested",
        conversation_id=conversation.id,
        user_id=conversation.user_id,
    )

    return StreamingResponse(
        event_stream(
            store.events,
            connection_event(conversation.user_id, conversation.id),
            request.is_disconnected,
            predicate=wanted,
            maxsize=settings.SSE_QUEUE_MAXSIZE,
            heartbeat_seconds=settings.SSE_HEARTBEAT_SECONDS,
        ),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
