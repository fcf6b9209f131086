# app/dependencies/__init__.py

from .database import get_db_connection
from .auth_utils import get_current_user_id
from .events import get_event_publisher

__all__ = [
    "get_db_connection",
    "get_current_user_id",
    "get_event_publisher",
]
