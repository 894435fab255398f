"""Invites Service schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from services.invites_service.models import InviteStatus
from services.profiles_service.schemas import ProfileMemberResponse, ProfileSummary


class InviteCreate(BaseModel):
    profile_id: uuid.UUID
    invitee_email: EmailStr
    revenue_share: Optional[float] = Field(default=None, ge=0, le=100)


class InviteTokenRequest(BaseModel):
    token: str = Field(..., min_length=1)


class InviteResponse(BaseModel):
    id: uuid.UUID
    profile_id: uuid.UUID
    inviter_id: str
    invitee_email: str
    invitee_id: Optional[str] = None
    revenue_share: float
    status: InviteStatus
    invite_token: str
    expires_at: datetime
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InviteCreatedResponse(BaseModel):
    invite: InviteResponse
    invite_url: str
    warning: Optional[str] = None


class MyInviteResponse(InviteResponse):
    profile: ProfileSummary


class PublicInviteResponse(BaseModel):
    """What an invite link reveals before sign-in. No token echo."""

    id: uuid.UUID
    invitee_email: str
    inviter_id: str
    revenue_share: float
    expires_at: datetime
    profile: ProfileSummary


class InviteAcceptResponse(BaseModel):
    invite: InviteResponse
    profile_id: uuid.UUID
    profile_member: ProfileMemberResponse
