# app/modules/activity/schemas.py

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class EventType(str, Enum):
    GROUP_CREATED = "GroupCreated"
    GROUP_EXPANDED = "GroupExpanded"
    MEMBERSHIP_INVITED = "MembershipInvited"
    MEMBERSHIP_ACCEPTED = "MembershipAccepted"
    MEMBERSHIP_DECLINED = "MembershipDeclined"
    GROUP_WATCHLIST_ADDED = "GroupWatchlistAdded"


class GroupEvent(BaseModel):
    """
    Logical event emitted by the group core. Delivery is best effort.
    """
    event_type: EventType
    actor_user_id: Optional[UUID] = None
    group_id: Optional[UUID] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
