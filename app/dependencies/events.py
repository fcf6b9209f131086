# app/dependencies/events.py

from fastapi import Depends

from app.dependencies.database import get_db_connection
from app.modules.activity.repository import ActivityRepository
from app.modules.activity.service import ActivityLogSink, EventPublisher, LoggingEventSink


def get_event_publisher(conn=Depends(get_db_connection)) -> EventPublisher:
    """
    Events go to the activity_logs table and the application log.
    """
    return EventPublisher([ActivityLogSink(ActivityRepository(conn)), LoggingEventSink()])
