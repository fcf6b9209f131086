# app/modules/groups/service.py

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional
from uuid import UUID, uuid4

from app.core.config import settings
from app.core.exceptions import (
    ConflictError,
    ForbiddenError,
    LimitExceededError,
    NotFoundError,
    ValidationError,
)
from app.modules.activity.schemas import EventType, GroupEvent
from app.modules.activity.service import EventPublisher
from app.modules.groups.repository import GroupStore
from app.modules.groups.schemas import (
    Group,
    GroupCreate,
    GroupExpand,
    GroupKind,
    GroupSettings,
    GroupSummary,
    GROUP_NAME_MAX_LENGTH,
    MANAGER_ROLES,
    MemberRole,
    Membership,
    MembershipStatus,
    RelationshipCreate,
)
from app.modules.users.repository import UserDirectory

logger = logging.getLogger(__name__)


# ---------------------------------------------------------
# Shared lookups (also used by memberships and matches)
# ---------------------------------------------------------
async def load_group(store: GroupStore, group_id: UUID) -> Group:
    group = await store.get_group(group_id)
    if group is None:
        raise NotFoundError("Group not found")
    return group


async def require_active_member(
    store: GroupStore,
    group_id: UUID,
    user_id: UUID,
    roles: Optional[Iterable[MemberRole]] = None,
    detail: str = "You are not a member of this group",
) -> Membership:
    membership = await store.get_membership(group_id, user_id)
    if membership is None or membership.status is not MembershipStatus.ACTIVE:
        raise ForbiddenError(detail)
    if roles is not None and membership.role not in set(roles):
        raise ForbiddenError(detail)
    return membership


class GroupService:
    """
    Group lifecycle: creation, the two-party relationship shortcut and
    one-way expansion couple -> friends -> watch_party.
    """

    def __init__(
        self,
        store: GroupStore,
        users: UserDirectory,
        events: EventPublisher,
        expand_retries: Optional[int] = None,
    ):
        self.store = store
        self.users = users
        self.events = events
        self.expand_retries = (
            settings.EXPAND_CONFLICT_RETRIES if expand_retries is None else expand_retries
        )

    # ---------------------------------------------------------
    # CREATE GROUP
    # ---------------------------------------------------------
    async def create_group(self, creator_id: UUID, payload: GroupCreate) -> Group:
        group = await self._insert_group(creator_id, payload)
        await self._publish_created(creator_id, group)
        return group

    async def _insert_group(self, creator_id: UUID, payload: GroupCreate) -> Group:
        kind = payload.kind
        max_members = self._resolve_max_members(kind, payload.max_members)
        now = datetime.now(timezone.utc)

        group = await self.store.create_group(
            Group(
                group_id=uuid4(),
                name=payload.name,
                description=payload.description,
                kind=kind,
                owner_id=creator_id,
                max_members=max_members,
                settings=GroupSettings.defaults_for(kind).merged(payload.settings),
                version=1,
                created_at=now,
                updated_at=now,
            )
        )
        await self.store.create_membership(
            Membership(
                group_id=group.group_id,
                user_id=creator_id,
                role=MemberRole.OWNER,
                status=MembershipStatus.ACTIVE,
                invited_by=None,
                joined_at=now,
                created_at=now,
                updated_at=now,
            )
        )
        logger.info("Group %s (%s) created by %s", group.group_id, kind.value, creator_id)
        return group

    @staticmethod
    def _resolve_max_members(kind: GroupKind, requested: Optional[int]) -> int:
        if kind is GroupKind.COUPLE:
            if requested is not None and requested != 2:
                raise ValidationError("A couple always has exactly 2 members")
            return 2

        max_members = requested if requested is not None else kind.default_max_members()
        if max_members < 2 or max_members > settings.GROUP_MAX_MEMBERS_LIMIT:
            raise ValidationError(
                f"max_members must be between 2 and {settings.GROUP_MAX_MEMBERS_LIMIT}"
            )
        return max_members

    # ---------------------------------------------------------
    # CREATE RELATIONSHIP
    # ---------------------------------------------------------
    async def create_relationship(self, creator_id: UUID, payload: RelationshipCreate) -> Group:
        partner = await self.users.find_by_email(payload.partner_email)
        if partner is None:
            raise NotFoundError("User not found with that email")
        if partner.user_id == creator_id:
            raise ValidationError("Cannot create relationship with yourself")

        creator = await self.users.find_by_id(creator_id)
        if creator is None:
            raise NotFoundError("Creator account not found")

        async with self.store.lock_pair(creator_id, partner.user_id):
            existing = await self.store.find_active_couple_between(creator_id, partner.user_id)
            if existing is not None:
                raise ConflictError("Relationship already exists with this user")

            default_name = f"{creator.display_name} & {partner.display_name}"
            group = await self._insert_group(
                creator_id,
                GroupCreate(
                    name=payload.name or default_name[:GROUP_NAME_MAX_LENGTH].rstrip(),
                    description=payload.description,
                    kind=GroupKind.COUPLE,
                ),
            )
            now = datetime.now(timezone.utc)
            invitation = await self.store.create_membership(
                Membership(
                    group_id=group.group_id,
                    user_id=partner.user_id,
                    role=MemberRole.MEMBER,
                    status=MembershipStatus.PENDING,
                    invited_by=creator_id,
                    created_at=now,
                    updated_at=now,
                )
            )

        await self._publish_created(creator_id, group)
        await self.events.publish(
            GroupEvent(
                event_type=EventType.MEMBERSHIP_INVITED,
                actor_user_id=creator_id,
                group_id=group.group_id,
                details={
                    "invited_user_id": str(invitation.user_id),
                    "status": invitation.status.value,
                },
            )
        )
        return group

    # ---------------------------------------------------------
    # EXPAND
    # ---------------------------------------------------------
    async def expand_group(self, actor_id: UUID, group_id: UUID, payload: GroupExpand) -> Group:
        attempts = self.expand_retries + 1
        for attempt in range(1, attempts + 1):
            group = await load_group(self.store, group_id)
            await require_active_member(
                self.store,
                group_id,
                actor_id,
                roles=MANAGER_ROLES,
                detail="You do not have permission to modify this group",
            )

            try:
                # Invites take the same lock, so the seat count cannot move
                # between the check and the write
                async with self.store.lock_group(group_id):
                    group = await load_group(self.store, group_id)
                    expanded = await self._expanded(group, payload)
                    updated = await self.store.update_group(expanded)
            except ConflictError:
                if attempt >= attempts:
                    raise
                logger.info(
                    "Version conflict expanding group %s, retrying (%d/%d)",
                    group_id, attempt, attempts,
                )
                continue

            await self.events.publish(
                GroupEvent(
                    event_type=EventType.GROUP_EXPANDED,
                    actor_user_id=actor_id,
                    group_id=group_id,
                    details={
                        "old_kind": group.kind.value,
                        "new_kind": updated.kind.value,
                        "max_members": updated.max_members,
                    },
                )
            )
            return updated

        # range() above always runs at least once
        raise ConflictError("Group was modified concurrently")

    async def _expanded(self, group: Group, payload: GroupExpand) -> Group:
        new_kind = payload.new_kind
        if new_kind.rank <= group.kind.rank:
            raise ValidationError(
                f"Cannot change a {group.kind.value} group to {new_kind.value}; "
                "groups can only be widened"
            )

        max_members = self._resolve_max_members(new_kind, payload.new_max_members)
        reserved = await self.store.count_reserved_seats(group.group_id)
        if max_members < reserved:
            raise LimitExceededError(
                f"Group already has {reserved} members or invitations"
            )

        return group.model_copy(
            update={
                "kind": new_kind,
                "max_members": max_members,
                "name": payload.new_name or group.name,
                "settings": GroupSettings.for_expansion(new_kind),
            }
        )

    # ---------------------------------------------------------
    # READS
    # ---------------------------------------------------------
    async def list_user_groups(self, user_id: UUID) -> List[GroupSummary]:
        summaries = []
        for membership in await self.store.list_user_memberships(user_id, MembershipStatus.ACTIVE):
            group = await self.store.get_group(membership.group_id)
            if group is None:
                continue
            members = await self.store.list_active_members(group.group_id)
            summaries.append(
                GroupSummary(
                    **group.model_dump(),
                    user_role=membership.role,
                    member_count=len(members),
                )
            )
        return summaries

    async def get_primary_relationship(self, user_id: UUID) -> Optional[GroupSummary]:
        """The group the user joined first, or None."""
        groups = await self.list_user_groups(user_id)
        return groups[0] if groups else None

    async def _publish_created(self, creator_id: UUID, group: Group) -> None:
        await self.events.publish(
            GroupEvent(
                event_type=EventType.GROUP_CREATED,
                actor_user_id=creator_id,
                group_id=group.group_id,
                details={"name": group.name, "kind": group.kind.value},
            )
        )
