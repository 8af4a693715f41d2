"""In-process publish/subscribe for session-state and dashboard change events."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)

STARTED = "started"
STOPPED = "stopped"
VIEW_COUNTED = "viewCounted"
FINISHED = "finished"

CALENDAR_EVENT_CREATED = "calendarEventCreated"
CALENDAR_EVENT_UPDATED = "calendarEventUpdated"
CALENDAR_EVENT_DELETED = "calendarEventDeleted"
RECOMMENDATION_CREATED = "recommendationCreated"
RECOMMENDATION_ENGAGEMENT_UPDATED = "recommendationEngagementUpdated"

EVENT_TYPES = frozenset({
    STARTED, STOPPED, VIEW_COUNTED, FINISHED,
    CALENDAR_EVENT_CREATED, CALENDAR_EVENT_UPDATED, CALENDAR_EVENT_DELETED,
    RECOMMENDATION_CREATED, RECOMMENDATION_ENGAGEMENT_UPDATED,
})


@dataclass(eq=False)
class Subscription:
    """One observer's mailbox. `user_id=None` receives every user's events."""
    user_id: Optional[int] = None
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)

    def wants(self, user_id) -> bool:
        return self.user_id is None or self.user_id == user_id

    async def get(self) -> dict:
        return await self.queue.get()

    def get_nowait(self) -> Optional[dict]:
        try:
            return self.queue.get_nowait()
        except asyncio.QueueEmpty:
            return None


class NotificationBus:
    """Fan-out of `{type, data}` envelopes to subscribers.

    publish() enqueues synchronously into every matching mailbox, so events
    for one user reach each observer in the order they were published.
    """

    def __init__(self):
        self._subscribers: set[Subscription] = set()

    def subscribe(self, user_id: Optional[int] = None) -> Subscription:
        sub = Subscription(user_id=user_id)
        self._subscribers.add(sub)
        logger.debug("Subscriber added (user=%s, total=%d)", user_id, len(self._subscribers))
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        self._subscribers.discard(sub)
        logger.debug("Subscriber removed (user=%s, total=%d)", sub.user_id, len(self._subscribers))

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event_type: str, data: dict) -> int:
        """Deliver an event; `data` must carry `user_id`. Returns recipients."""
        if event_type not in EVENT_TYPES:
            raise ValueError(f"unknown event type: {event_type}")
        if "user_id" not in data:
            raise ValueError("event payload must include user_id")
        envelope = {"type": event_type, "data": data}
        delivered = 0
        for sub in list(self._subscribers):
            if sub.wants(data["user_id"]):
                sub.queue.put_nowait(envelope)
                delivered += 1
        logger.debug("Published %s for user %s to %d subscribers",
                      event_type, data["user_id"], delivered)
        return delivered
