# app/modules/matches/service.py

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from app.core.exceptions import ConflictError
from app.modules.activity.schemas import EventType, GroupEvent
from app.modules.activity.service import EventPublisher
from app.modules.groups.repository import GroupStore
from app.modules.groups.service import load_group, require_active_member
from app.modules.matches.repository import WatchlistProvider
from app.modules.matches.schemas import (
    ContentMatch,
    GroupWatchlistAdd,
    GroupWatchlistItem,
    MatchMember,
    MediaKind,
)
from app.modules.media.client import MediaEnrichment

logger = logging.getLogger(__name__)

ContentKey = Tuple[int, MediaKind]


class MatchService:
    """
    Finds watchlist items shared by two or more active members of a group.
    Read-only apart from the group watchlist suggestions.
    """

    def __init__(
        self,
        store: GroupStore,
        watchlists: WatchlistProvider,
        events: EventPublisher,
        enrichment: Optional[MediaEnrichment] = None,
    ):
        self.store = store
        self.watchlists = watchlists
        self.events = events
        self.enrichment = enrichment

    async def find_matches(self, actor_id: UUID, group_id: UUID) -> List[ContentMatch]:
        await load_group(self.store, group_id)
        await require_active_member(self.store, group_id, actor_id)

        members = await self.store.list_active_members(group_id)
        if len(members) < 2:
            return []

        contributions: Dict[ContentKey, Dict[UUID, str]] = {}
        for member in members:
            for entry in await self.watchlists.list_entries(member.user_id):
                by_user = contributions.setdefault((entry.content_id, entry.media_kind), {})
                # First entry wins if a user lists the same item twice
                by_user.setdefault(member.user_id, entry.status)

        matches = [
            ContentMatch(
                content_id=content_id,
                media_kind=media_kind,
                members=[MatchMember(user_id=u, status=s) for u, s in by_user.items()],
            )
            for (content_id, media_kind), by_user in contributions.items()
            if len(by_user) >= 2
        ]
        matches.sort(key=lambda m: (m.content_id, m.media_kind.value))

        if self.enrichment is None:
            return matches
        return await self._enrich(matches)

    async def _enrich(self, matches: List[ContentMatch]) -> List[ContentMatch]:
        """Drops (and logs) any match whose metadata lookup fails."""
        enriched = []
        for match in matches:
            try:
                details = await self.enrichment.describe(match.content_id, match.media_kind)
            except Exception as ex:
                logger.warning(
                    "Dropping match %s/%s: enrichment failed: %s",
                    match.media_kind.value, match.content_id, ex,
                )
                continue
            enriched.append(
                match.model_copy(update={"title": details.title, "poster": details.poster})
            )
        return enriched

    # ---------------------------------------------------------
    # GROUP WATCHLIST
    # ---------------------------------------------------------
    async def suggest_for_group(
        self, actor_id: UUID, group_id: UUID, payload: GroupWatchlistAdd
    ) -> GroupWatchlistItem:
        await load_group(self.store, group_id)
        await require_active_member(self.store, group_id, actor_id)

        existing = await self.store.get_group_watchlist_item(
            group_id, payload.content_id, payload.media_kind
        )
        if existing is not None:
            raise ConflictError("This content is already in the group watchlist")

        item = await self.store.add_group_watchlist_item(
            GroupWatchlistItem(
                group_id=group_id,
                content_id=payload.content_id,
                media_kind=payload.media_kind,
                suggested_by=actor_id,
                notes=payload.notes,
                status="suggested",
                created_at=datetime.now(timezone.utc),
            )
        )

        await self.events.publish(
            GroupEvent(
                event_type=EventType.GROUP_WATCHLIST_ADDED,
                actor_user_id=actor_id,
                group_id=group_id,
                details={"content_id": item.content_id, "media_kind": item.media_kind.value},
            )
        )
        return item
