"""Membership invite endpoints."""

import uuid

from fastapi import APIRouter, Depends, status
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.invites_service.schemas import (
    InviteAcceptResponse,
    InviteCreate,
    InviteCreatedResponse,
    InviteResponse,
    InviteTokenRequest,
    MyInviteResponse,
    PublicInviteResponse,
)
from services.invites_service.services import invite_workflow
from services.profiles_service.schemas import ProfileMemberResponse, ProfileSummary
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/api/invites", tags=["invites"])


@router.post(
    "/send", response_model=InviteCreatedResponse, status_code=status.HTTP_201_CREATED
)
async def send_invite(
    body: InviteCreate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Invite someone by email to join a profile at a proposed revenue share."""
    invite, warning = await invite_workflow.create_invite(
        db,
        inviter=current_user,
        profile_id=body.profile_id,
        invitee_email=body.invitee_email,
        proposed_share=body.revenue_share,
    )
    return InviteCreatedResponse(
        invite=InviteResponse.model_validate(invite),
        invite_url=invite_workflow.invite_url(invite.invite_token),
        warning=warning,
    )


@router.get("/profile/{profile_id}", response_model=list[InviteResponse])
async def list_profile_invites(
    profile_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await invite_workflow.list_profile_invites(
        db, profile_id=profile_id, user_id=current_user.user_id
    )


@router.get("/me", response_model=list[MyInviteResponse])
async def list_my_invites(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    rows = await invite_workflow.list_my_invites(db, user=current_user)
    return [
        MyInviteResponse(
            **InviteResponse.model_validate(invite).model_dump(),
            profile=ProfileSummary.model_validate(profile),
        )
        for invite, profile in rows
    ]


@router.get("/token/{token}", response_model=PublicInviteResponse)
async def get_invite_by_token(token: str, db: AsyncSession = Depends(get_async_db)):
    """Public: resolve an invite link."""
    invite, profile = await invite_workflow.get_invite_by_token(db, token)
    return PublicInviteResponse(
        id=invite.id,
        invitee_email=invite.invitee_email,
        inviter_id=invite.inviter_id,
        revenue_share=invite.revenue_share,
        expires_at=invite.expires_at,
        profile=ProfileSummary.model_validate(profile),
    )


@router.post("/accept", response_model=InviteAcceptResponse)
async def accept_invite(
    body: InviteTokenRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    invite, member = await invite_workflow.accept_invite(
        db, token=body.token, user=current_user
    )
    return InviteAcceptResponse(
        invite=InviteResponse.model_validate(invite),
        profile_id=member.profile_id,
        profile_member=ProfileMemberResponse.model_validate(member),
    )


@router.post("/reject", response_model=InviteResponse)
async def reject_invite(
    body: InviteTokenRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await invite_workflow.reject_invite(db, token=body.token, user=current_user)


@router.delete("/{invite_id}", response_model=InviteResponse)
async def cancel_invite(
    invite_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await invite_workflow.cancel_invite(
        db, invite_id=invite_id, user_id=current_user.user_id
    )
