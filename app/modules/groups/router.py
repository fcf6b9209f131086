# app/modules/groups/router.py

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status

from app.dependencies.auth_utils import get_current_user_id
from app.dependencies.database import get_db_connection
from app.dependencies.events import get_event_publisher
from app.modules.activity.service import EventPublisher
from app.modules.groups.repository import GroupRepository
from app.modules.groups.schemas import (
    Group,
    GroupCreate,
    GroupExpand,
    GroupSummary,
    RelationshipCreate,
)
from app.modules.groups.service import GroupService
from app.modules.users.repository import UserRepository


router = APIRouter(
    prefix="/groups",
    tags=["Groups"],
)


def get_group_service(
    conn=Depends(get_db_connection),
    events: EventPublisher = Depends(get_event_publisher),
) -> GroupService:
    return GroupService(GroupRepository(conn), UserRepository(conn), events)


# ---------------------------------------------------------
# RELATIONSHIP (two-party shortcut)
# ---------------------------------------------------------
@router.post("/relationship", response_model=Group, status_code=status.HTTP_201_CREATED)
async def create_relationship(
    body: RelationshipCreate,
    service: GroupService = Depends(get_group_service),
    current_user_id: UUID = Depends(get_current_user_id),
):
    return await service.create_relationship(current_user_id, body)


@router.get("/relationship", response_model=Optional[GroupSummary])
async def get_primary_relationship(
    service: GroupService = Depends(get_group_service),
    current_user_id: UUID = Depends(get_current_user_id),
):
    return await service.get_primary_relationship(current_user_id)


# ---------------------------------------------------------
# GROUPS
# ---------------------------------------------------------
@router.post("/", response_model=Group, status_code=status.HTTP_201_CREATED)
async def create_group(
    body: GroupCreate,
    service: GroupService = Depends(get_group_service),
    current_user_id: UUID = Depends(get_current_user_id),
):
    return await service.create_group(current_user_id, body)


@router.get("/", response_model=List[GroupSummary])
async def list_groups(
    service: GroupService = Depends(get_group_service),
    current_user_id: UUID = Depends(get_current_user_id),
):
    return await service.list_user_groups(current_user_id)


@router.put("/{group_id}/expand", response_model=Group)
async def expand_group(
    group_id: UUID,
    body: GroupExpand,
    service: GroupService = Depends(get_group_service),
    current_user_id: UUID = Depends(get_current_user_id),
):
    return await service.expand_group(current_user_id, group_id, body)
