# app/modules/memberships/service.py

"""
MembershipService:
- Invites users into a group (owner/admin only, capacity-checked)
- Accept / decline of pending invitations
- Pending-invitation inbox for a user
"""

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, List, Optional
from uuid import UUID

from app.core.config import settings
from app.core.exceptions import (
    ConflictError,
    LimitExceededError,
    NotFoundError,
    ValidationError,
)
from app.modules.activity.schemas import EventType, GroupEvent
from app.modules.activity.service import EventPublisher
from app.modules.groups.repository import GroupStore, pair_key
from app.modules.groups.schemas import (
    MANAGER_ROLES,
    Group,
    GroupKind,
    MemberRole,
    Membership,
    MembershipStatus,
    PendingInvitation,
)
from app.modules.groups.service import load_group, require_active_member

logger = logging.getLogger(__name__)


class MembershipService:
    def __init__(
        self,
        store: GroupStore,
        events: EventPublisher,
        allow_reinvite_after_decline: Optional[bool] = None,
    ):
        self.store = store
        self.events = events
        self.allow_reinvite_after_decline = (
            settings.ALLOW_REINVITE_AFTER_DECLINE
            if allow_reinvite_after_decline is None
            else allow_reinvite_after_decline
        )

    # ---------------------------------------------------------
    # INVITE
    # ---------------------------------------------------------
    async def invite(
        self,
        actor_id: UUID,
        group_id: UUID,
        user_ids: List[UUID],
    ) -> List[Membership]:
        """
        All-or-nothing: either every target gets a membership row or
        none does.
        """
        await load_group(self.store, group_id)
        await require_active_member(
            self.store,
            group_id,
            actor_id,
            roles=MANAGER_ROLES,
            detail="You do not have permission to invite users to this group",
        )

        if not user_ids:
            raise ValidationError("user_ids must not be empty")
        if len(set(user_ids)) != len(user_ids):
            raise ValidationError("user_ids contains duplicates")
        if actor_id in user_ids:
            raise ValidationError("Cannot invite yourself")

        async with self.store.lock_group(group_id):
            # Re-read under the lock so settings and capacity are current
            group = await load_group(self.store, group_id)
            if not group.settings.allow_invites:
                raise ValidationError("invites disabled")

            reserved = await self.store.count_reserved_seats(group_id)
            if reserved + len(user_ids) > group.max_members:
                raise LimitExceededError(
                    "Adding these users would exceed the group member limit"
                )

            to_create: List[UUID] = []
            to_reset: List[Membership] = []
            for user_id in user_ids:
                existing = await self.store.get_membership(group_id, user_id)
                if existing is None:
                    to_create.append(user_id)
                elif (
                    existing.status is MembershipStatus.DECLINED
                    and self.allow_reinvite_after_decline
                ):
                    to_reset.append(existing)
                else:
                    raise ConflictError(
                        f"User {user_id} is already a member or has been invited"
                    )

            async with self._pair_locks(group, user_ids):
                if group.kind is GroupKind.COUPLE:
                    for user_id in user_ids:
                        other = await self.store.find_active_couple_between(
                            group.owner_id, user_id
                        )
                        if other is not None and other.group_id != group_id:
                            raise ConflictError("Relationship already exists with this user")

                status = (
                    MembershipStatus.PENDING
                    if group.settings.require_approval
                    else MembershipStatus.ACTIVE
                )
                now = datetime.now(timezone.utc)
                joined_at = now if status is MembershipStatus.ACTIVE else None

                invitations: List[Membership] = []
                for user_id in to_create:
                    invitations.append(
                        await self.store.create_membership(
                            Membership(
                                group_id=group_id,
                                user_id=user_id,
                                role=MemberRole.MEMBER,
                                status=status,
                                invited_by=actor_id,
                                joined_at=joined_at,
                                created_at=now,
                                updated_at=now,
                            )
                        )
                    )
                for declined in to_reset:
                    invitations.append(
                        await self.store.update_membership(
                            declined.model_copy(
                                update={
                                    "role": MemberRole.MEMBER,
                                    "status": status,
                                    "invited_by": actor_id,
                                    "joined_at": joined_at,
                                }
                            )
                        )
                    )

        for invitation in invitations:
            await self.events.publish(
                GroupEvent(
                    event_type=EventType.MEMBERSHIP_INVITED,
                    actor_user_id=actor_id,
                    group_id=group_id,
                    details={
                        "invited_user_id": str(invitation.user_id),
                        "status": invitation.status.value,
                    },
                )
            )
        logger.info(
            "%d user(s) invited to group %s by %s", len(invitations), group_id, actor_id
        )
        return invitations

    @asynccontextmanager
    async def _pair_locks(self, group: Group, user_ids: List[UUID]) -> AsyncIterator[None]:
        """
        Inviting into a couple forms a pair with the owner, so it queues
        behind create_relationship on the same two users.
        """
        async with AsyncExitStack() as stack:
            if group.kind is GroupKind.COUPLE:
                for user_id in sorted(user_ids, key=lambda u: pair_key(group.owner_id, u)):
                    await stack.enter_async_context(
                        self.store.lock_pair(group.owner_id, user_id)
                    )
            yield

    # ---------------------------------------------------------
    # ACCEPT / DECLINE
    # ---------------------------------------------------------
    async def accept(self, actor_id: UUID, group_id: UUID) -> Membership:
        async with self.store.lock_group(group_id):
            membership = await self._pending_membership(actor_id, group_id)

            group = await load_group(self.store, group_id)
            active = await self.store.list_active_members(group_id)
            if len(active) >= group.max_members:
                raise LimitExceededError("Group is full")

            accepted = await self.store.update_membership(
                membership.model_copy(
                    update={
                        "status": MembershipStatus.ACTIVE,
                        "joined_at": datetime.now(timezone.utc),
                    }
                )
            )

        await self.events.publish(
            GroupEvent(
                event_type=EventType.MEMBERSHIP_ACCEPTED,
                actor_user_id=actor_id,
                group_id=group_id,
                details={"joined_at": accepted.joined_at.isoformat()},
            )
        )
        return accepted

    async def decline(self, actor_id: UUID, group_id: UUID) -> None:
        async with self.store.lock_group(group_id):
            membership = await self._pending_membership(actor_id, group_id)
            await self.store.update_membership(
                membership.model_copy(update={"status": MembershipStatus.DECLINED})
            )

        await self.events.publish(
            GroupEvent(
                event_type=EventType.MEMBERSHIP_DECLINED,
                actor_user_id=actor_id,
                group_id=group_id,
            )
        )

    async def _pending_membership(self, user_id: UUID, group_id: UUID) -> Membership:
        membership = await self.store.get_membership(group_id, user_id)
        if membership is None:
            raise NotFoundError("No invitation found for this group")
        if membership.status is not MembershipStatus.PENDING:
            raise ConflictError("No pending invitation found for this group")
        return membership

    # ---------------------------------------------------------
    # LIST
    # ---------------------------------------------------------
    async def list_pending_invitations_for(self, user_id: UUID) -> List[PendingInvitation]:
        return await self.store.find_pending_invitations_for(user_id)
