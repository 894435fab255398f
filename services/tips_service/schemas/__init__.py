"""Tips Service schemas."""

import uuid
from datetime import datetime
from typing import Any, Optional

from libs.common.currency import MAX_MAJOR_AMOUNT, to_major
from pydantic import BaseModel, Field
from services.tips_service.models import Tip, TipStatus


class TipCreate(BaseModel):
    profile_id: uuid.UUID
    amount: float = Field(
        ...,
        gt=0,
        le=MAX_MAJOR_AMOUNT,
        allow_inf_nan=False,
        description="Tip amount in major currency units",
    )
    donor_name: str = Field(..., max_length=120)
    message: Optional[str] = Field(default=None, max_length=500)


class TipResponse(BaseModel):
    id: uuid.UUID
    profile_id: uuid.UUID
    donor_name: str
    message: Optional[str] = None
    amount: float
    currency: str
    payment_status: TipStatus
    created_at: datetime

    @classmethod
    def from_model(cls, tip: Tip) -> "TipResponse":
        return cls(
            id=tip.id,
            profile_id=tip.profile_id,
            donor_name=tip.donor_name,
            message=tip.message,
            amount=to_major(tip.amount_minor),
            currency=tip.currency,
            payment_status=tip.payment_status,
            created_at=tip.created_at,
        )


class CheckoutResponse(BaseModel):
    session_id: str
    url: Optional[str] = None


class MemberCreditResponse(BaseModel):
    user_id: str
    share: float
    amount: float
    credited: bool


class DistributionResponse(BaseModel):
    tip_id: uuid.UUID
    status: str
    amount: float
    credits: list[MemberCreditResponse] = []
    warnings: list[dict[str, Any]] = []


class SessionStatusResponse(BaseModel):
    session_id: str
    status: Optional[str] = None
    payment_status: Optional[str] = None
    amount_total: Optional[float] = None
    tip_id: Optional[uuid.UUID] = None
    distribution: Optional[DistributionResponse] = None
