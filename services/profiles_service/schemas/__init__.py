"""Profiles Service schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from services.profiles_service.models import MemberRole, ProfileRole


class ProfileCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    role: ProfileRole = ProfileRole.BUSKER
    description: Optional[str] = None


class ProfileResponse(BaseModel):
    id: uuid.UUID
    name: str
    role: ProfileRole
    description: Optional[str] = None
    user_id: str
    has_bank_account: bool = False
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProfileSummary(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ProfileMemberResponse(BaseModel):
    id: uuid.UUID
    profile_id: uuid.UUID
    user_id: str
    role: MemberRole
    revenue_share: float
    alias: Optional[str] = None
    specialty: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MemberInfoUpdate(BaseModel):
    alias: Optional[str] = Field(default=None, max_length=120)
    specialty: Optional[str] = Field(default=None, max_length=120)
    description: Optional[str] = None


class BankAccountUpdate(BaseModel):
    bank_account_token: str = Field(..., min_length=1)
    payout_email: Optional[EmailStr] = None
