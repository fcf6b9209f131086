# app/modules/groups/schemas.py

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.config import settings


class GroupKind(str, Enum):
    COUPLE = "couple"
    FRIENDS = "friends"
    WATCH_PARTY = "watch_party"

    @property
    def rank(self) -> int:
        """Position in the widening order couple < friends < watch_party."""
        return _KIND_ORDER.index(self)

    def default_max_members(self) -> int:
        if self is GroupKind.COUPLE:
            return 2
        if self is GroupKind.FRIENDS:
            return settings.FRIENDS_MAX_MEMBERS
        return settings.WATCH_PARTY_MAX_MEMBERS


_KIND_ORDER = [GroupKind.COUPLE, GroupKind.FRIENDS, GroupKind.WATCH_PARTY]


class MemberRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class MembershipStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    DECLINED = "declined"


MANAGER_ROLES = frozenset({MemberRole.OWNER, MemberRole.ADMIN})

# Matches groups.name VARCHAR(100)
GROUP_NAME_MAX_LENGTH = 100


# ---------------------------------------------------------
# SETTINGS
# ---------------------------------------------------------
class GroupSettings(BaseModel):
    is_public: bool = False
    require_approval: bool = True
    allow_invites: bool = True

    @classmethod
    def defaults_for(cls, kind: GroupKind) -> "GroupSettings":
        if kind is GroupKind.COUPLE:
            return cls(is_public=False, require_approval=False, allow_invites=False)
        return cls(is_public=False, require_approval=True, allow_invites=True)

    @classmethod
    def for_expansion(cls, kind: GroupKind) -> "GroupSettings":
        return cls(
            is_public=kind is GroupKind.WATCH_PARTY,
            require_approval=kind is not GroupKind.WATCH_PARTY,
            allow_invites=True,
        )

    def merged(self, overrides: Optional["GroupSettingsUpdate"]) -> "GroupSettings":
        """Field-by-field overlay; only fields the caller actually set win."""
        if overrides is None:
            return self.model_copy()
        return self.model_copy(update=overrides.model_dump(exclude_none=True))


class GroupSettingsUpdate(BaseModel):
    is_public: Optional[bool] = None
    require_approval: Optional[bool] = None
    allow_invites: Optional[bool] = None


# ---------------------------------------------------------
# STORED RECORDS
# ---------------------------------------------------------
class Group(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    group_id: UUID
    name: str
    description: Optional[str] = None
    kind: GroupKind
    owner_id: UUID
    max_members: int = Field(..., ge=1)
    settings: GroupSettings
    version: int = 1
    created_at: datetime
    updated_at: datetime


class Membership(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    group_id: UUID
    user_id: UUID
    role: MemberRole
    status: MembershipStatus
    invited_by: Optional[UUID] = None
    joined_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class PendingInvitation(BaseModel):
    membership: Membership
    group: Group


class GroupSummary(Group):
    """A group as seen by one of its members."""
    user_role: MemberRole
    member_count: int


# ---------------------------------------------------------
# REQUEST BODIES
# ---------------------------------------------------------
class GroupCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=GROUP_NAME_MAX_LENGTH)
    description: Optional[str] = None
    kind: GroupKind
    max_members: Optional[int] = Field(default=None, ge=2)
    settings: Optional[GroupSettingsUpdate] = None


class RelationshipCreate(BaseModel):
    partner_email: str = Field(..., min_length=3)
    name: Optional[str] = Field(default=None, max_length=GROUP_NAME_MAX_LENGTH)
    description: Optional[str] = None

    @field_validator("partner_email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class GroupExpand(BaseModel):
    new_kind: GroupKind
    new_max_members: Optional[int] = Field(default=None, ge=2)
    new_name: Optional[str] = Field(default=None, min_length=1, max_length=GROUP_NAME_MAX_LENGTH)


class InviteRequest(BaseModel):
    user_ids: List[UUID] = Field(..., min_length=1)
