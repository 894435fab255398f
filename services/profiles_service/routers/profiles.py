"""Profile and roster endpoints."""

import uuid

from fastapi import APIRouter, Depends, status
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.profiles_service.models import Profile
from services.profiles_service.schemas import (
    BankAccountUpdate,
    MemberInfoUpdate,
    ProfileCreate,
    ProfileMemberResponse,
    ProfileResponse,
)
from services.profiles_service.services import revenue_share
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/api/profiles", tags=["profiles"])


def _profile_to_response(profile: Profile) -> ProfileResponse:
    return ProfileResponse(
        id=profile.id,
        name=profile.name,
        role=profile.role,
        description=profile.description,
        user_id=profile.user_id,
        has_bank_account=bool(profile.bank_account_token),
        created_at=profile.created_at,
    )


@router.post("", response_model=ProfileResponse, status_code=status.HTTP_201_CREATED)
async def create_profile(
    body: ProfileCreate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Create a profile; the caller becomes its owner with a 100% share."""
    profile, _owner = await revenue_share.create_profile(
        db,
        user_id=current_user.user_id,
        email=current_user.email,
        name=body.name,
        role=body.role,
        description=body.description,
    )
    return _profile_to_response(profile)


@router.get("/{profile_id}", response_model=ProfileResponse)
async def get_profile(profile_id: uuid.UUID, db: AsyncSession = Depends(get_async_db)):
    profile = await revenue_share.get_profile(db, profile_id)
    return _profile_to_response(profile)


@router.get("/{profile_id}/members", response_model=list[ProfileMemberResponse])
async def list_members(profile_id: uuid.UUID, db: AsyncSession = Depends(get_async_db)):
    """Roster with revenue shares, in join order."""
    await revenue_share.get_profile(db, profile_id)
    return await revenue_share.get_roster(db, profile_id)


@router.patch("/{profile_id}/members/me", response_model=ProfileMemberResponse)
async def update_my_member_info(
    profile_id: uuid.UUID,
    body: MemberInfoUpdate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await revenue_share.update_member_info(
        db,
        profile_id=profile_id,
        user_id=current_user.user_id,
        alias=body.alias,
        specialty=body.specialty,
        description=body.description,
    )


@router.put("/{profile_id}/bank-account", response_model=ProfileResponse)
async def set_bank_account(
    profile_id: uuid.UUID,
    body: BankAccountUpdate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    profile = await revenue_share.set_bank_account(
        db,
        profile_id=profile_id,
        user_id=current_user.user_id,
        bank_account_token=body.bank_account_token,
        payout_email=body.payout_email,
    )
    return _profile_to_response(profile)
