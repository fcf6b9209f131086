# app/modules/activity/service.py

"""
Event delivery for the group core.

Services hand events to an EventPublisher, which fans them out to every
configured sink. A sink failure is logged and dropped; it never reaches
the operation that produced the event.
"""

import logging
from typing import Iterable, List, Protocol

from app.modules.activity.repository import ActivityRepository
from app.modules.activity.schemas import GroupEvent

logger = logging.getLogger(__name__)


class EventSink(Protocol):
    async def emit(self, event: GroupEvent) -> None: ...


class ActivityLogSink:
    """Persists events to activity_logs."""

    def __init__(self, repo: ActivityRepository):
        self.repo = repo

    async def emit(self, event: GroupEvent) -> None:
        # Savepoint so a failed insert does not poison the request transaction
        async with self.repo.conn.transaction():
            await self.repo.log_event(event)


class LoggingEventSink:
    async def emit(self, event: GroupEvent) -> None:
        logger.info(
            "event=%s actor=%s group=%s details=%s",
            event.event_type.value,
            event.actor_user_id,
            event.group_id,
            event.details,
        )


class EventPublisher:
    def __init__(self, sinks: Iterable[EventSink] = ()):
        self.sinks: List[EventSink] = list(sinks)

    async def publish(self, event: GroupEvent) -> None:
        for sink in self.sinks:
            try:
                await sink.emit(event)
            except Exception:
                logger.exception(
                    "Failed to deliver %s to %s",
                    event.event_type.value,
                    type(sink).__name__,
                )
