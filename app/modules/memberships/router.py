# app/modules/memberships/router.py

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status

from app.dependencies.auth_utils import get_current_user_id
from app.dependencies.database import get_db_connection
from app.dependencies.events import get_event_publisher
from app.modules.activity.service import EventPublisher
from app.modules.groups.repository import GroupRepository
from app.modules.groups.schemas import InviteRequest, Membership, PendingInvitation
from app.modules.memberships.service import MembershipService


router = APIRouter(prefix="/groups", tags=["Memberships"])


def get_membership_service(
    conn=Depends(get_db_connection),
    events: EventPublisher = Depends(get_event_publisher),
) -> MembershipService:
    return MembershipService(GroupRepository(conn), events)


@router.get("/invitations", response_model=List[PendingInvitation])
async def list_invitations(
    service: MembershipService = Depends(get_membership_service),
    current_user_id: UUID = Depends(get_current_user_id),
):
    return await service.list_pending_invitations_for(current_user_id)


@router.post(
    "/{group_id}/invite",
    response_model=List[Membership],
    status_code=status.HTTP_201_CREATED,
)
async def invite_to_group(
    group_id: UUID,
    body: InviteRequest,
    service: MembershipService = Depends(get_membership_service),
    current_user_id: UUID = Depends(get_current_user_id),
):
    return await service.invite(current_user_id, group_id, body.user_ids)


@router.post("/{group_id}/accept", response_model=Membership)
async def accept_invitation(
    group_id: UUID,
    service: MembershipService = Depends(get_membership_service),
    current_user_id: UUID = Depends(get_current_user_id),
):
    return await service.accept(current_user_id, group_id)


@router.post("/{group_id}/decline")
async def decline_invitation(
    group_id: UUID,
    service: MembershipService = Depends(get_membership_service),
    current_user_id: UUID = Depends(get_current_user_id),
):
    await service.decline(current_user_id, group_id)
    return {"message": "Invitation declined"}
