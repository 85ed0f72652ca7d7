import asyncio
import json

import pytest

from app.models.domain.inbox_domain import InboxEvent
from app.routes import conversations
from app.services.event_bus import EventBus
from app.services.streaming import (
    HEARTBEAT_FRAME,
    connection_event,
    event_stream,
    format_sse_event,
)


class DisconnectAfter:
    """is_disconnected stand-in that reports a disconnect after n checks."""

    def __init__(self, checks: int):
        self.remaining = checks

    async def __call__(self) -> bool:
        self.remaining -= 1
        return self.remaining < 0


class ConnectedRequest:
    """Request stand-in whose client never disconnects."""

    async def is_disconnected(self) -> bool:
        return False


def _parse(frame: str):
    lines = frame.strip().split("\n")
    assert lines[0].startswith("event: ")
    assert lines[1].startswith("data: ")
    return lines[0][len("event: ") :], json.loads(lines[1][len("data: ") :])


def _message_event() -> InboxEvent:
    return InboxEvent(type="message:new", conversation_id="c1", user_id="u1")


def test_format_sse_event():
    """Frames carry the event kind and a camelCase JSON payload."""
    frame = format_sse_event(
        InboxEvent(type="conversation:updated", conversation_id="c1", user_id="u1", priority=72)
    )

    assert frame.endswith("\n\n")
    assert _parse(frame) == (
        "conversation:updated",
        {"conversationId": "c1", "userId": "u1", "priority": 72},
    )


def test_connection_event_marks_stream_open():
    """The opening frame is a message:new with the connection-established marker."""
    kind, data = _parse(format_sse_event(connection_event("u1", "c1")))

    assert kind == "message:new"
    assert data["messageId"] == "connection-established"
    assert data["conversationId"] == "c1"


@pytest.mark.asyncio
async def test_stream_sends_initial_frame_then_events():
    """Events emitted after the stream starts follow the opening frame."""
    bus = EventBus()
    stream = event_stream(bus, connection_event("u1"), DisconnectAfter(1), heartbeat_seconds=5)

    first = await stream.__anext__()
    bus.emit(InboxEvent(type="conversation:new", conversation_id="c1", user_id="u1"))
    second = await stream.__anext__()
    await stream.aclose()

    assert _parse(first)[1]["messageId"] == "connection-established"
    assert _parse(second)[0] == "conversation:new"
    assert bus.subscriber_count == 0


@pytest.mark.asyncio
async def test_stream_applies_predicate():
    """Events rejected by the predicate never reach the client."""
    bus = EventBus()
    stream = event_stream(
        bus,
        connection_event("u1"),
        DisconnectAfter(10),
        predicate=lambda event: event.user_id == "u1",
        heartbeat_seconds=5,
    )

    await stream.__anext__()
    bus.emit(InboxEvent(type="message:new", conversation_id="c2", user_id="u2"))
    bus.emit(_message_event())
    frame = await stream.__anext__()
    await stream.aclose()

    assert _parse(frame)[1]["userId"] == "u1"


@pytest.mark.asyncio
async def test_stream_sends_heartbeat_when_idle():
    """An idle stream emits a heartbeat comment once the interval passes."""
    bus = EventBus()

    stream = event_stream(bus, connection_event("u1"), DisconnectAfter(1), heartbeat_seconds=0.01)
    frames = [frame async for frame in stream]

    assert frames[1] == HEARTBEAT_FRAME
    assert bus.subscriber_count == 0


@pytest.mark.asyncio
async def test_heartbeat_keeps_schedule_under_steady_traffic():
    """Events arriving faster than the interval do not postpone heartbeats."""
    bus = EventBus()
    stream = event_stream(
        bus, connection_event("u1"), DisconnectAfter(1000), heartbeat_seconds=0.05
    )
    await stream.__anext__()

    async def emit_steadily():
        for _ in range(30):
            bus.emit(_message_event())
            await asyncio.sleep(0.01)

    emitter = asyncio.create_task(emit_steadily())
    frames = []
    while not emitter.done():
        frames.append(await stream.__anext__())
    await stream.aclose()

    heartbeats = frames.count(HEARTBEAT_FRAME)
    assert heartbeats >= 3
    assert len(frames) - heartbeats >= 20


@pytest.mark.asyncio
async def test_stream_ends_when_subscription_overflows():
    """A subscriber that falls behind is dropped and its stream ends."""
    bus = EventBus()
    stream = event_stream(
        bus, connection_event("u1"), DisconnectAfter(10), maxsize=1, heartbeat_seconds=5
    )

    await stream.__anext__()
    for _ in range(2):
        bus.emit(_message_event())
    remaining = [frame async for frame in stream]

    assert remaining == []
    assert bus.subscriber_count == 0


@pytest.mark.asyncio
async def test_closing_the_generator_unsubscribes():
    """Closing the generator mid-stream releases the bus subscription."""
    bus = EventBus()

    stream = event_stream(bus, connection_event("u1"), DisconnectAfter(100), heartbeat_seconds=5)
    await stream.__anext__()
    assert bus.subscriber_count == 1

    await stream.aclose()

    assert bus.subscriber_count == 0


@pytest.mark.asyncio
async def test_unstarted_stream_response_holds_no_subscription():
    """A stream response that is never iterated leaves nothing on the bus."""
    bus = EventBus()

    response = await conversations.stream_conversations(
        request=ConnectedRequest(), user_id="u1", events=bus
    )
    assert bus.subscriber_count == 0
    del response

    assert bus.subscriber_count == 0


@pytest.mark.asyncio
async def test_stream_response_subscribes_only_while_iterated():
    """The route's subscription lives exactly as long as its body is streamed."""
    bus = EventBus()
    response = await conversations.stream_conversations(
        request=ConnectedRequest(), user_id="u1", events=bus
    )

    body = response.body_iterator
    await body.__anext__()
    assert bus.subscriber_count == 1

    await body.aclose()
    assert bus.subscriber_count == 0
