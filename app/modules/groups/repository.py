# app/modules/groups/repository.py

"""
GroupStore contract and its PostgreSQL implementation.

Every method runs on the request connection, which is already inside a
transaction (see Database.get_connection). Locks taken here are released
when that transaction ends.
"""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Protocol
from uuid import UUID

import asyncpg
from asyncpg import Connection

from app.core.exceptions import ConflictError
from app.modules.groups.schemas import (
    Group,
    GroupKind,
    GroupSettings,
    Membership,
    MembershipStatus,
    PendingInvitation,
)
from app.modules.matches.schemas import GroupWatchlistItem, MediaKind


class GroupStore(Protocol):
    async def create_group(self, group: Group) -> Group: ...

    async def get_group(self, group_id: UUID) -> Optional[Group]: ...

    async def update_group(self, group: Group) -> Group: ...

    async def create_membership(self, membership: Membership) -> Membership: ...

    async def get_membership(self, group_id: UUID, user_id: UUID) -> Optional[Membership]: ...

    async def update_membership(self, membership: Membership) -> Membership: ...

    async def list_active_members(self, group_id: UUID) -> List[Membership]: ...

    async def count_reserved_seats(self, group_id: UUID) -> int: ...

    async def list_user_memberships(
        self, user_id: UUID, status: MembershipStatus
    ) -> List[Membership]: ...

    async def find_active_couple_between(self, user_a: UUID, user_b: UUID) -> Optional[Group]: ...

    async def find_pending_invitations_for(self, user_id: UUID) -> List[PendingInvitation]: ...

    async def add_group_watchlist_item(self, item: GroupWatchlistItem) -> GroupWatchlistItem: ...

    async def get_group_watchlist_item(
        self, group_id: UUID, content_id: int, media_kind: MediaKind
    ) -> Optional[GroupWatchlistItem]: ...

    def lock_group(self, group_id: UUID): ...

    def lock_pair(self, user_a: UUID, user_b: UUID): ...


def pair_key(user_a: UUID, user_b: UUID) -> str:
    """Order-independent key for a pair of users."""
    low, high = sorted((str(user_a), str(user_b)))
    return f"{low}:{high}"


_GROUP_COLUMNS = """
    group_id, name, description, kind, owner_id, max_members,
    settings, version, created_at, updated_at
"""

_MEMBER_COLUMNS = """
    group_id, user_id, role, status, invited_by, joined_at,
    created_at, updated_at
"""


def _row_to_group(row) -> Group:
    data = dict(row)
    raw_settings = data["settings"]
    if isinstance(raw_settings, str):
        # asyncpg hands JSONB back as text unless a codec is registered
        raw_settings = json.loads(raw_settings)
    data["settings"] = GroupSettings(**raw_settings)
    return Group(**data)


def _row_to_membership(row) -> Membership:
    return Membership(**dict(row))


class GroupRepository:
    def __init__(self, conn: Connection):
        self.conn = conn

    # ---------------------------------------------------------
    # LOCKS
    # ---------------------------------------------------------
    @asynccontextmanager
    async def lock_group(self, group_id: UUID) -> AsyncIterator[None]:
        """
        Row lock on the group for the rest of the request transaction.
        Concurrent invites for the same group queue up behind it.
        """
        async with self.conn.transaction():
            await self.conn.execute(
                "SELECT 1 FROM groups WHERE group_id = $1 FOR UPDATE",
                group_id,
            )
            yield

    @asynccontextmanager
    async def lock_pair(self, user_a: UUID, user_b: UUID) -> AsyncIterator[None]:
        async with self.conn.transaction():
            await self.conn.execute(
                "SELECT pg_advisory_xact_lock(hashtext($1))",
                pair_key(user_a, user_b),
            )
            yield

    # ---------------------------------------------------------
    # GROUPS
    # ---------------------------------------------------------
    async def create_group(self, group: Group) -> Group:
        try:
            row = await self.conn.fetchrow(
                f"""
                INSERT INTO groups (
                    group_id, name, description, kind, owner_id,
                    max_members, settings, version, created_at, updated_at
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb, $8, $9, $10)
                RETURNING {_GROUP_COLUMNS}
                """,
                group.group_id,
                group.name,
                group.description,
                group.kind.value,
                group.owner_id,
                group.max_members,
                group.settings.model_dump_json(),
                group.version,
                group.created_at,
                group.updated_at,
            )
        except asyncpg.UniqueViolationError:
            raise ConflictError("Group id already exists")
        return _row_to_group(row)

    async def get_group(self, group_id: UUID) -> Optional[Group]:
        row = await self.conn.fetchrow(
            f"SELECT {_GROUP_COLUMNS} FROM groups WHERE group_id = $1",
            group_id,
        )
        return _row_to_group(row) if row else None

    async def update_group(self, group: Group) -> Group:
        """
        Full replace guarded by the version the caller read.
        A stale version means someone else wrote first.
        """
        row = await self.conn.fetchrow(
            f"""
            UPDATE groups
            SET name = $3,
                description = $4,
                kind = $5,
                max_members = $6,
                settings = $7::jsonb,
                version = version + 1,
                updated_at = now()
            WHERE group_id = $1
              AND version = $2
            RETURNING {_GROUP_COLUMNS}
            """,
            group.group_id,
            group.version,
            group.name,
            group.description,
            group.kind.value,
            group.max_members,
            group.settings.model_dump_json(),
        )
        if not row:
            raise ConflictError("Group was modified concurrently")
        return _row_to_group(row)

    # ---------------------------------------------------------
    # MEMBERSHIPS
    # ---------------------------------------------------------
    async def create_membership(self, membership: Membership) -> Membership:
        try:
            row = await self.conn.fetchrow(
                f"""
                INSERT INTO group_members (
                    group_id, user_id, role, status, invited_by,
                    joined_at, created_at, updated_at
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                RETURNING {_MEMBER_COLUMNS}
                """,
                membership.group_id,
                membership.user_id,
                membership.role.value,
                membership.status.value,
                membership.invited_by,
                membership.joined_at,
                membership.created_at,
                membership.updated_at,
            )
        except asyncpg.UniqueViolationError:
            raise ConflictError("User is already a member or has been invited")
        return _row_to_membership(row)

    async def get_membership(self, group_id: UUID, user_id: UUID) -> Optional[Membership]:
        row = await self.conn.fetchrow(
            f"""
            SELECT {_MEMBER_COLUMNS}
            FROM group_members
            WHERE group_id = $1 AND user_id = $2
            """,
            group_id,
            user_id,
        )
        return _row_to_membership(row) if row else None

    async def update_membership(self, membership: Membership) -> Membership:
        row = await self.conn.fetchrow(
            f"""
            UPDATE group_members
            SET role = $3,
                status = $4,
                invited_by = $5,
                joined_at = $6,
                updated_at = now()
            WHERE group_id = $1 AND user_id = $2
            RETURNING {_MEMBER_COLUMNS}
            """,
            membership.group_id,
            membership.user_id,
            membership.role.value,
            membership.status.value,
            membership.invited_by,
            membership.joined_at,
        )
        if not row:
            raise ConflictError("Membership no longer exists")
        return _row_to_membership(row)

    async def list_active_members(self, group_id: UUID) -> List[Membership]:
        rows = await self.conn.fetch(
            f"""
            SELECT {_MEMBER_COLUMNS}
            FROM group_members
            WHERE group_id = $1 AND status = 'active'
            ORDER BY joined_at ASC
            """,
            group_id,
        )
        return [_row_to_membership(r) for r in rows]

    async def count_reserved_seats(self, group_id: UUID) -> int:
        return await self.conn.fetchval(
            """
            SELECT COUNT(*)
            FROM group_members
            WHERE group_id = $1 AND status IN ('active', 'pending')
            """,
            group_id,
        )

    async def list_user_memberships(
        self, user_id: UUID, status: MembershipStatus
    ) -> List[Membership]:
        rows = await self.conn.fetch(
            f"""
            SELECT {_MEMBER_COLUMNS}
            FROM group_members
            WHERE user_id = $1 AND status = $2
            ORDER BY joined_at ASC NULLS LAST, created_at ASC
            """,
            user_id,
            status.value,
        )
        return [_row_to_membership(r) for r in rows]

    async def find_active_couple_between(self, user_a: UUID, user_b: UUID) -> Optional[Group]:
        """
        A couple counts as live while both sides are active or pending;
        a declined partner frees the pair.
        """
        row = await self.conn.fetchrow(
            """
            SELECT g.group_id, g.name, g.description, g.kind, g.owner_id, g.max_members,
                   g.settings, g.version, g.created_at, g.updated_at
            FROM groups g
            JOIN group_members a ON a.group_id = g.group_id AND a.user_id = $1
            JOIN group_members b ON b.group_id = g.group_id AND b.user_id = $2
            WHERE g.kind = 'couple'
              AND a.status IN ('active', 'pending')
              AND b.status IN ('active', 'pending')
            LIMIT 1
            """,
            user_a,
            user_b,
        )
        return _row_to_group(row) if row else None

    async def find_pending_invitations_for(self, user_id: UUID) -> List[PendingInvitation]:
        rows = await self.conn.fetch(
            """
            SELECT
                m.group_id, m.user_id, m.role, m.status, m.invited_by,
                m.joined_at, m.created_at, m.updated_at,
                g.name, g.description, g.kind, g.owner_id, g.max_members,
                g.settings, g.version,
                g.created_at AS group_created_at,
                g.updated_at AS group_updated_at
            FROM group_members m
            JOIN groups g ON g.group_id = m.group_id
            WHERE m.user_id = $1 AND m.status = 'pending'
            ORDER BY m.created_at DESC
            """,
            user_id,
        )
        invitations = []
        for r in rows:
            membership = _row_to_membership(
                {k: r[k] for k in (
                    "group_id", "user_id", "role", "status", "invited_by",
                    "joined_at", "created_at", "updated_at",
                )}
            )
            group = _row_to_group(
                {
                    "group_id": r["group_id"],
                    "name": r["name"],
                    "description": r["description"],
                    "kind": GroupKind(r["kind"]),
                    "owner_id": r["owner_id"],
                    "max_members": r["max_members"],
                    "settings": r["settings"],
                    "version": r["version"],
                    "created_at": r["group_created_at"],
                    "updated_at": r["group_updated_at"],
                }
            )
            invitations.append(PendingInvitation(membership=membership, group=group))
        return invitations

    # ---------------------------------------------------------
    # GROUP WATCHLIST
    # ---------------------------------------------------------
    async def add_group_watchlist_item(self, item: GroupWatchlistItem) -> GroupWatchlistItem:
        try:
            row = await self.conn.fetchrow(
                """
                INSERT INTO group_watchlist (
                    group_id, tmdb_id, media_type, suggested_by, notes, status, created_at
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                RETURNING group_id, tmdb_id AS content_id, media_type AS media_kind,
                          suggested_by, notes, status, created_at
                """,
                item.group_id,
                item.content_id,
                item.media_kind.value,
                item.suggested_by,
                item.notes,
                item.status,
                item.created_at,
            )
        except asyncpg.UniqueViolationError:
            raise ConflictError("This content is already in the group watchlist")
        return GroupWatchlistItem(**dict(row))

    async def get_group_watchlist_item(
        self, group_id: UUID, content_id: int, media_kind: MediaKind
    ) -> Optional[GroupWatchlistItem]:
        row = await self.conn.fetchrow(
            """
            SELECT group_id, tmdb_id AS content_id, media_type AS media_kind,
                   suggested_by, notes, status, created_at
            FROM group_watchlist
            WHERE group_id = $1 AND tmdb_id = $2 AND media_type = $3
            """,
            group_id,
            content_id,
            media_kind.value,
        )
        return GroupWatchlistItem(**dict(row)) if row else None
