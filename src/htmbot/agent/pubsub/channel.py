"""
In-process event bus.

Topic-scoped fan-out of chat events to any number of subscribers. Each
subscriber owns a bounded asyncio.Queue; publishing never blocks and never
fails. When a subscriber's queue is full the event is dropped for that
subscriber only, so a slow browser tab cannot stall the message pipeline
or the other viewers.

Usage:
    bus = ChannelPubSub()

    with bus.subscribe(session_id) as subscription:
        async for event in subscription:
            await send(event.to_dict())

    bus.publish(session_id, DeltaEvent(session_id, delta_id, "Hel"))
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Callable, Optional

from ..domain.entities import ChatEvent
from ..domain.exceptions import SubscriptionClosed
from ..domain.ports import IPubSub, ISubscription

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 1000

# Wakes a reader blocked on an empty queue after cancel()
_CLOSED = object()


class Subscription(ISubscription):
    """A receiving queue registered under one topic.

    Created by ``ChannelPubSub.subscribe``. The owner drains it and must
    call ``cancel()`` on every exit path; using the subscription as a
    context manager does that automatically.

    Attributes:
        topic: Topic this subscription listens to
        queue: Bounded queue of pending events
        dropped: Events dropped because the queue was full
    """

    def __init__(
        self,
        topic: str,
        maxsize: int,
        on_cancel: Callable[[Subscription], None],
    ):
        self.topic = topic
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0
        self._closed = False
        self._on_cancel = on_cancel

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, event: ChatEvent) -> bool:
        """Offer an event without blocking.

        Returns:
            True if the event was queued, False if dropped or closed
        """
        if self._closed:
            return False
        try:
            self.queue.put_nowait(event)
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            logger.debug(
                f"Subscriber queue full on topic {self.topic}, "
                f"dropped {type(event).__name__} ({self.dropped} total)"
            )
            return False

    def cancel(self) -> None:
        """Unregister from the bus and close the queue.

        Safe to call more than once; only the first call has an effect.
        """
        if self._closed:
            return
        self._closed = True
        self._on_cancel(self)
        try:
            self.queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # Reader is not blocked on a full queue; it stops once drained.
            pass

    async def get(self) -> ChatEvent:
        """Wait for the next event.

        Raises:
            SubscriptionClosed: After cancel() once pending events are drained
        """
        if self._closed and self.queue.empty():
            raise SubscriptionClosed(self.topic)
        item = await self.queue.get()
        if item is _CLOSED:
            raise SubscriptionClosed(self.topic)
        return item


class ChannelPubSub(IPubSub):
    """Topic-keyed publish/subscribe over bounded asyncio queues.

    The topic registry is the only shared mutable structure. Subscribe and
    cancel mutate it under a lock; publish holds the lock just long enough
    to snapshot the subscriber list and delivers outside of it.

    Attributes:
        queue_size: Capacity of each subscriber queue
    """

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE):
        if queue_size < 1:
            raise ValueError("queue_size must be at least 1")
        self.queue_size = queue_size
        self._subscriptions: dict[str, list[Subscription]] = {}
        self._lock = threading.Lock()

    def subscribe(self, topic: str, queue_size: Optional[int] = None) -> Subscription:
        """Register a new subscriber queue under ``topic``.

        Args:
            topic: Topic to listen to (a chat session ID)
            queue_size: Override the bus-wide queue capacity

        Returns:
            Subscription the caller drains and eventually cancels
        """
        subscription = Subscription(
            topic=topic,
            maxsize=queue_size or self.queue_size,
            on_cancel=self._remove,
        )
        with self._lock:
            self._subscriptions.setdefault(topic, []).append(subscription)
            count = len(self._subscriptions[topic])
        logger.debug(f"Subscribed to topic {topic} ({count} subscribers)")
        return subscription

    def publish(self, topic: str, event: ChatEvent) -> None:
        """Deliver an event to every current subscriber of ``topic``.

        Never blocks and never raises for delivery problems: full queues
        drop the event, and a topic without subscribers is a no-op.
        """
        with self._lock:
            subscribers = list(self._subscriptions.get(topic, ()))

        for subscription in subscribers:
            subscription.deliver(event)

    def subscriber_count(self, topic: str) -> int:
        """Number of subscriptions currently registered under ``topic``."""
        with self._lock:
            return len(self._subscriptions.get(topic, ()))

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            subscribers = self._subscriptions.get(subscription.topic)
            if not subscribers:
                return
            try:
                subscribers.remove(subscription)
            except ValueError:
                return
            if not subscribers:
                del self._subscriptions[subscription.topic]
        logger.debug(f"Unsubscribed from topic {subscription.topic}")
