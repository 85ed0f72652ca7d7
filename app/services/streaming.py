"""
Server-sent event streaming over EventBus subscriptions.

Frames:
    event: <kind>\\ndata: <json>\\n\\n      one per bus event
    : heartbeat\\n\\n                       keep-alive comment, no event kind

A stream opens one Subscription when iteration starts and closes it on every
exit path: client disconnect, cancellation, queue overflow, or generator close.
Heartbeats follow a fixed schedule whether or not events are flowing.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Awaitable, Callable

from app.infrastructure.observability.logging import get_logger
from app.models.domain.inbox_domain import InboxEvent
from app.services.event_bus import (
    DEFAULT_QUEUE_MAXSIZE,
    EventBus,
    EventPredicate,
    SubscriptionClosed,
)

logger = get_logger(__name__)

HEARTBEAT_FRAME = ": heartbeat\n\n"
CONNECTION_ESTABLISHED = "connection-established"

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

DisconnectCheck = Callable[[], Awaitable[bool]]


def format_sse_event(event: InboxEvent) -> str:
    return f"event: {event.type}\ndata: {json.dumps(event.payload())}\n\n"


def connection_event(user_id: str, conversation_id: str = "") -> InboxEvent:
    """Initial frame sent as soon as a stream opens."""
    return InboxEvent(
        type="message:new",
        conversation_id=conversation_id,
        user_id=user_id,
        message_id=CONNECTION_ESTABLISHED,
    )


async def event_stream(
    events: EventBus,
    initial_event: InboxEvent,
    is_disconnected: DisconnectCheck,
    predicate: EventPredicate | None = None,
    maxsize: int = DEFAULT_QUEUE_MAXSIZE,
    heartbeat_seconds: float = 30.0,
) -> AsyncIterator[str]:
    """
    Yield SSE frames from a bus subscription until the client goes away.

    The subscription is opened when iteration starts, so a response that is
    never streamed holds nothing on the bus.

    Args:
        events: Bus to subscribe to
        initial_event: Sent first so clients know the stream is live
        is_disconnected: Coroutine reporting client disconnect
        predicate: Filter for the events this stream forwards
        maxsize: Subscription queue bound
        heartbeat_seconds: Fixed interval between heartbeat comments
    """
    subscription = events.open_subscription(maxsize=maxsize, predicate=predicate)
    loop = asyncio.get_running_loop()
    next_heartbeat = loop.time() + heartbeat_seconds
    sent = 0
    try:
        yield format_sse_event(initial_event)
        while True:
            if await is_disconnected():
                break
            try:
                event = await subscription.get(timeout=max(0.0, next_heartbeat - loop.time()))
            except SubscriptionClosed:
                break
            if event is not None:
                yield format_sse_event(event)
                sent += 1
            # Heartbeats run on their own schedule, not on idle gaps.
            if event is None or loop.time() >= next_heartbeat:
                yield HEARTBEAT_FRAME
                next_heartbeat = loop.time() + heartbeat_seconds
    finally:
        subscription.close()
        logger.info(
            "Event stream closed",
            user_id=initial_event.user_id,
            conversation_id=initial_event.conversation_id or None,
            events_sent=sent,
            overflowed=subscription.overflowed,
        )
