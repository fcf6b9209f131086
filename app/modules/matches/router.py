# app/modules/matches/router.py

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status

from app.core.config import settings
from app.dependencies.auth_utils import get_current_user_id
from app.dependencies.database import get_db_connection
from app.dependencies.events import get_event_publisher
from app.modules.activity.service import EventPublisher
from app.modules.groups.repository import GroupRepository
from app.modules.matches.repository import WatchlistRepository
from app.modules.matches.schemas import ContentMatch, GroupWatchlistAdd, GroupWatchlistItem
from app.modules.matches.service import MatchService
from app.modules.media.client import MediaEnrichment, TMDbClient


router = APIRouter(prefix="/groups", tags=["Matches"])


def get_media_enrichment() -> Optional[MediaEnrichment]:
    if not settings.MEDIA_ENRICHMENT_ENABLED:
        return None
    return TMDbClient()


def get_match_service(
    conn=Depends(get_db_connection),
    events: EventPublisher = Depends(get_event_publisher),
    enrichment: Optional[MediaEnrichment] = Depends(get_media_enrichment),
) -> MatchService:
    return MatchService(
        GroupRepository(conn),
        WatchlistRepository(conn),
        events,
        enrichment=enrichment,
    )


@router.get("/{group_id}/matches", response_model=List[ContentMatch])
async def get_group_matches(
    group_id: UUID,
    service: MatchService = Depends(get_match_service),
    current_user_id: UUID = Depends(get_current_user_id),
):
    return await service.find_matches(current_user_id, group_id)


@router.post(
    "/{group_id}/watchlist",
    response_model=GroupWatchlistItem,
    status_code=status.HTTP_201_CREATED,
)
async def add_to_group_watchlist(
    group_id: UUID,
    body: GroupWatchlistAdd,
    service: MatchService = Depends(get_match_service),
    current_user_id: UUID = Depends(get_current_user_id),
):
    return await service.suggest_for_group(current_user_id, group_id, body)
