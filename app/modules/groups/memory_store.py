# app/modules/groups/memory_store.py

"""
In-process GroupStore used by the unit tests and for local experiments.

Mirrors the PostgreSQL repository: the same uniqueness rules, the same
optimistic version check, and asyncio locks standing in for row and
advisory locks.
"""

import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Dict, List, Optional, Tuple
from uuid import UUID

from app.core.exceptions import ConflictError
from app.modules.groups.repository import pair_key
from app.modules.groups.schemas import (
    Group,
    GroupKind,
    Membership,
    MembershipStatus,
    PendingInvitation,
)
from app.modules.matches.schemas import GroupWatchlistItem, MediaKind


_SEAT_STATUSES = (MembershipStatus.ACTIVE, MembershipStatus.PENDING)


class InMemoryGroupStore:
    def __init__(self) -> None:
        self.groups: Dict[UUID, Group] = {}
        self.memberships: Dict[Tuple[UUID, UUID], Membership] = {}
        self.group_watchlist: Dict[Tuple[UUID, int, MediaKind], GroupWatchlistItem] = {}
        self._group_locks: Dict[UUID, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._pair_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    # ---------------------------------------------------------
    # LOCKS
    # ---------------------------------------------------------
    @asynccontextmanager
    async def lock_group(self, group_id: UUID) -> AsyncIterator[None]:
        async with self._group_locks[group_id]:
            yield

    @asynccontextmanager
    async def lock_pair(self, user_a: UUID, user_b: UUID) -> AsyncIterator[None]:
        async with self._pair_locks[pair_key(user_a, user_b)]:
            yield

    # ---------------------------------------------------------
    # GROUPS
    # ---------------------------------------------------------
    async def create_group(self, group: Group) -> Group:
        if group.group_id in self.groups:
            raise ConflictError("Group id already exists")
        self.groups[group.group_id] = group.model_copy(deep=True)
        return group.model_copy(deep=True)

    async def get_group(self, group_id: UUID) -> Optional[Group]:
        group = self.groups.get(group_id)
        return group.model_copy(deep=True) if group else None

    async def update_group(self, group: Group) -> Group:
        stored = self.groups.get(group.group_id)
        if stored is None or stored.version != group.version:
            raise ConflictError("Group was modified concurrently")
        updated = group.model_copy(
            deep=True,
            update={
                "owner_id": stored.owner_id,
                "created_at": stored.created_at,
                "version": stored.version + 1,
                "updated_at": datetime.now(timezone.utc),
            },
        )
        self.groups[group.group_id] = updated
        return updated.model_copy(deep=True)

    # ---------------------------------------------------------
    # MEMBERSHIPS
    # ---------------------------------------------------------
    async def create_membership(self, membership: Membership) -> Membership:
        key = (membership.group_id, membership.user_id)
        if key in self.memberships:
            raise ConflictError("User is already a member or has been invited")
        self.memberships[key] = membership.model_copy(deep=True)
        return membership.model_copy(deep=True)

    async def get_membership(self, group_id: UUID, user_id: UUID) -> Optional[Membership]:
        membership = self.memberships.get((group_id, user_id))
        return membership.model_copy(deep=True) if membership else None

    async def update_membership(self, membership: Membership) -> Membership:
        key = (membership.group_id, membership.user_id)
        if key not in self.memberships:
            raise ConflictError("Membership no longer exists")
        updated = membership.model_copy(
            deep=True, update={"updated_at": datetime.now(timezone.utc)}
        )
        self.memberships[key] = updated
        return updated.model_copy(deep=True)

    async def list_active_members(self, group_id: UUID) -> List[Membership]:
        members = [
            m.model_copy(deep=True)
            for (gid, _), m in self.memberships.items()
            if gid == group_id and m.status is MembershipStatus.ACTIVE
        ]
        return sorted(members, key=lambda m: m.joined_at or m.created_at)

    async def count_reserved_seats(self, group_id: UUID) -> int:
        return sum(
            1
            for (gid, _), m in self.memberships.items()
            if gid == group_id and m.status in _SEAT_STATUSES
        )

    async def list_user_memberships(
        self, user_id: UUID, status: MembershipStatus
    ) -> List[Membership]:
        members = [
            m.model_copy(deep=True)
            for (_, uid), m in self.memberships.items()
            if uid == user_id and m.status is status
        ]
        return sorted(members, key=lambda m: m.joined_at or m.created_at)

    async def find_active_couple_between(self, user_a: UUID, user_b: UUID) -> Optional[Group]:
        for group in self.groups.values():
            if group.kind is not GroupKind.COUPLE:
                continue
            a = self.memberships.get((group.group_id, user_a))
            b = self.memberships.get((group.group_id, user_b))
            if a and b and a.status in _SEAT_STATUSES and b.status in _SEAT_STATUSES:
                return group.model_copy(deep=True)
        return None

    async def find_pending_invitations_for(self, user_id: UUID) -> List[PendingInvitation]:
        invitations = [
            PendingInvitation(
                membership=m.model_copy(deep=True),
                group=self.groups[gid].model_copy(deep=True),
            )
            for (gid, uid), m in self.memberships.items()
            if uid == user_id and m.status is MembershipStatus.PENDING
        ]
        return sorted(invitations, key=lambda i: i.membership.created_at, reverse=True)

    # ---------------------------------------------------------
    # GROUP WATCHLIST
    # ---------------------------------------------------------
    async def add_group_watchlist_item(self, item: GroupWatchlistItem) -> GroupWatchlistItem:
        key = (item.group_id, item.content_id, item.media_kind)
        if key in self.group_watchlist:
            raise ConflictError("This content is already in the group watchlist")
        self.group_watchlist[key] = item.model_copy(deep=True)
        return item.model_copy(deep=True)

    async def get_group_watchlist_item(
        self, group_id: UUID, content_id: int, media_kind: MediaKind
    ) -> Optional[GroupWatchlistItem]:
        item = self.group_watchlist.get((group_id, content_id, media_kind))
        return item.model_copy(deep=True) if item else None
