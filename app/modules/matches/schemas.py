# app/modules/matches/schemas.py

from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class MediaKind(str, Enum):
    MOVIE = "movie"
    TV = "tv"


class WatchlistEntry(BaseModel):
    """One item on a user's personal watchlist."""
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    content_id: int
    media_kind: MediaKind
    status: str


class MatchMember(BaseModel):
    user_id: UUID
    status: str


class ContentMatch(BaseModel):
    content_id: int
    media_kind: MediaKind
    members: List[MatchMember]
    # Filled in only when media enrichment is enabled
    title: Optional[str] = None
    poster: Optional[str] = None


class MediaDetails(BaseModel):
    title: str
    poster: Optional[str] = None


class GroupWatchlistItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    group_id: UUID
    content_id: int
    media_kind: MediaKind
    suggested_by: UUID
    notes: Optional[str] = None
    status: str = "suggested"
    created_at: datetime


class GroupWatchlistAdd(BaseModel):
    content_id: int = Field(..., ge=1)
    media_kind: MediaKind
    notes: Optional[str] = Field(default=None, max_length=500)
