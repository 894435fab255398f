"""Withdrawals Service schemas."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.currency import MAX_MAJOR_AMOUNT, to_major
from pydantic import BaseModel, Field
from services.withdrawals_service.models import (
    PayoutMethod,
    Withdrawal,
    WithdrawalStatus,
)


class WithdrawalRequest(BaseModel):
    profile_id: uuid.UUID
    amount: float = Field(
        ...,
        gt=0,
        le=MAX_MAJOR_AMOUNT,
        allow_inf_nan=False,
        description="Amount in major currency units",
    )
    notes: Optional[str] = Field(default=None, max_length=500)


class WithdrawalReject(BaseModel):
    notes: Optional[str] = Field(default=None, max_length=500)


class WithdrawalResponse(BaseModel):
    id: uuid.UUID
    profile_id: uuid.UUID
    user_id: str
    amount: float
    currency: str
    status: WithdrawalStatus
    payout_method: Optional[PayoutMethod] = None
    stripe_payout_id: Optional[str] = None
    payout_error: Optional[str] = None
    notes: Optional[str] = None
    processed_by: Optional[str] = None
    requested_at: datetime
    processed_at: Optional[datetime] = None
    profile_name: Optional[str] = None

    @classmethod
    def from_model(
        cls, withdrawal: Withdrawal, profile_name: Optional[str] = None
    ) -> "WithdrawalResponse":
        return cls(
            id=withdrawal.id,
            profile_id=withdrawal.profile_id,
            user_id=withdrawal.user_id,
            amount=to_major(withdrawal.amount_minor),
            currency=withdrawal.currency,
            status=withdrawal.status,
            payout_method=withdrawal.payout_method,
            stripe_payout_id=withdrawal.stripe_payout_id,
            payout_error=withdrawal.payout_error,
            notes=withdrawal.notes,
            processed_by=withdrawal.processed_by,
            requested_at=withdrawal.requested_at,
            processed_at=withdrawal.processed_at,
            profile_name=profile_name,
        )


class PayoutResult(BaseModel):
    success: bool
    payout_id: Optional[str] = None
    error: Optional[str] = None


class ApprovalResponse(BaseModel):
    withdrawal: WithdrawalResponse
    new_balance: float
    payout: PayoutResult


class PayoutStatusResponse(BaseModel):
    withdrawal_id: uuid.UUID
    status: str
    payout_id: Optional[str] = None
    payout_method: Optional[PayoutMethod] = None
    payout_error: Optional[str] = None
    amount: Optional[float] = None
    currency: Optional[str] = None
    arrival_date: Optional[int] = None
    failure_code: Optional[str] = None
    failure_message: Optional[str] = None


class BulkPayoutItem(BaseModel):
    withdrawal_id: uuid.UUID
    success: bool
    payout_id: Optional[str] = None
    error: Optional[str] = None


class BulkPayoutResponse(BaseModel):
    processed: int
    succeeded: int
    failed: int
    results: list[BulkPayoutItem]
