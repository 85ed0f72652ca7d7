"""
In-process change notification bus.

Two ways to listen:
- subscribe(listener): plain callback, called synchronously on emit.
- open_subscription(): a bounded asyncio.Queue per subscriber, used by the
  streaming endpoints. Emit never blocks on a queue; a subscriber whose queue
  fills up is closed and dropped.

Delivery follows subscription order. A failing listener is logged and
skipped; it never reaches the emitter or the other listeners.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable

from app.infrastructure.observability.logging import get_logger
from app.models.domain.inbox_domain import InboxEvent

logger = get_logger(__name__)

Listener = Callable[[InboxEvent], None]
EventPredicate = Callable[[InboxEvent], bool]

DEFAULT_QUEUE_MAXSIZE = 100


class SubscriptionClosed(Exception):
    """Raised by Subscription.get() once the subscription has been closed."""


_CLOSED = object()


class EventBus:
    def __init__(self) -> None:
        self._listeners: list[Listener] = []
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns an idempotent unsubscribe function."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                try:
                    self._listeners.remove(listener)
                except ValueError:
                    pass

        return unsubscribe

    def open_subscription(
        self,
        maxsize: int = DEFAULT_QUEUE_MAXSIZE,
        predicate: EventPredicate | None = None,
    ) -> Subscription:
        """
        Open a queue-backed subscription bound to the running event loop.

        Args:
            maxsize: Queue bound; overflowing closes the subscription
            predicate: Optional filter applied before queueing

        Returns:
            Subscription to read events from
        """
        subscription = Subscription(asyncio.get_running_loop(), maxsize, predicate)
        subscription._unsubscribe = self.subscribe(subscription._offer)
        return subscription

    def emit(self, event: InboxEvent) -> None:
        """Deliver an event to every current listener."""
        with self._lock:
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "Event listener failed",
                    event_type=event.type,
                    conversation_id=event.conversation_id,
                )


class Subscription:
    """Bounded per-subscriber queue fed by the EventBus."""

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        maxsize: int,
        predicate: EventPredicate | None = None,
    ) -> None:
        self._loop = loop
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize + 1)
        self._maxsize = maxsize
        self._predicate = predicate
        self._unsubscribe: Callable[[], None] | None = None
        self.closed = False
        self.overflowed = False

    def _in_loop(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False

    def _offer(self, event: InboxEvent) -> None:
        if self.closed:
            return
        if self._predicate is not None and not self._predicate(event):
            return
        if self._in_loop():
            self._put(event)
        else:
            self._loop.call_soon_threadsafe(self._put, event)

    def _put(self, event: InboxEvent) -> None:
        if self.closed:
            return
        # One slot is reserved for the close sentinel.
        if self._queue.qsize() >= self._maxsize:
            self.overflowed = True
            logger.warning(
                "Subscriber queue full, dropping subscription",
                maxsize=self._maxsize,
                event_type=event.type,
            )
            self.close()
            return
        self._queue.put_nowait(event)

    async def get(self, timeout: float | None = None) -> InboxEvent | None:
        """
        Wait for the next event.

        Returns:
            The event, or None when the timeout elapses first

        Raises:
            SubscriptionClosed: The subscription was closed
        """
        if self.closed and self._queue.empty():
            raise SubscriptionClosed()
        try:
            item = await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            return None
        if item is _CLOSED:
            raise SubscriptionClosed()
        return item

    def close(self) -> None:
        """Unsubscribe from the bus and wake any waiting reader. Idempotent."""
        if self.closed:
            return
        self.closed = True
        if self._unsubscribe is not None:
            self._unsubscribe()
        if self._in_loop():
            self._wake()
        else:
            self._loop.call_soon_threadsafe(self._wake)

    def _wake(self) -> None:
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
