"""Withdrawal request and admin settlement endpoints."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, status
from libs.auth.dependencies import get_current_user, require_admin
from libs.auth.models import AuthUser
from libs.common.currency import to_major
from libs.common.stripe_client import StripeClient, get_stripe_client
from libs.db.session import get_async_db
from services.withdrawals_service.models import WithdrawalStatus
from services.withdrawals_service.schemas import (
    ApprovalResponse,
    BulkPayoutItem,
    BulkPayoutResponse,
    PayoutResult,
    PayoutStatusResponse,
    WithdrawalReject,
    WithdrawalRequest,
    WithdrawalResponse,
)
from services.withdrawals_service.services import settlement
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/api/withdrawals", tags=["withdrawals"])


@router.post(
    "/request", response_model=WithdrawalResponse, status_code=status.HTTP_201_CREATED
)
async def request_withdrawal(
    body: WithdrawalRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Profile owner asks to withdraw part of their saldo."""
    withdrawal = await settlement.request_withdrawal(
        db,
        user=current_user,
        profile_id=body.profile_id,
        amount=body.amount,
        notes=body.notes,
    )
    return WithdrawalResponse.from_model(withdrawal)


# =============================================================================
# Admin Endpoints
# =============================================================================


@router.get("/admin/all", response_model=list[WithdrawalResponse])
async def list_all_withdrawals(
    status: Optional[WithdrawalStatus] = None,
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    rows = await settlement.list_all_withdrawals(db, status=status)
    return [WithdrawalResponse.from_model(w, profile_name=name) for w, name in rows]


@router.patch("/admin/bulk-process", response_model=BulkPayoutResponse)
async def bulk_process_payouts(
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
    payout_client: StripeClient = Depends(get_stripe_client),
):
    """Retry automatic payouts for approved withdrawals still waiting on one."""
    results = await settlement.bulk_process(db, payout_client=payout_client)
    succeeded = sum(1 for r in results if r["success"])
    return BulkPayoutResponse(
        processed=len(results),
        succeeded=succeeded,
        failed=len(results) - succeeded,
        results=[BulkPayoutItem(**r) for r in results],
    )


@router.patch("/{withdrawal_id}/approve", response_model=ApprovalResponse)
async def approve_withdrawal(
    withdrawal_id: uuid.UUID,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
    payout_client: StripeClient = Depends(get_stripe_client),
):
    result = await settlement.approve_withdrawal(
        db, withdrawal_id=withdrawal_id, admin=admin, payout_client=payout_client
    )
    return ApprovalResponse(
        withdrawal=WithdrawalResponse.from_model(result.withdrawal),
        new_balance=to_major(result.new_balance_minor),
        payout=PayoutResult(
            success=result.payout.success,
            payout_id=result.payout.payout_id,
            error=result.payout.error,
        ),
    )


@router.patch("/{withdrawal_id}/reject", response_model=WithdrawalResponse)
async def reject_withdrawal(
    withdrawal_id: uuid.UUID,
    body: Optional[WithdrawalReject] = None,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    withdrawal = await settlement.reject_withdrawal(
        db,
        withdrawal_id=withdrawal_id,
        admin=admin,
        notes=body.notes if body else None,
    )
    return WithdrawalResponse.from_model(withdrawal)


@router.patch("/{withdrawal_id}/mark-completed", response_model=WithdrawalResponse)
async def mark_withdrawal_completed(
    withdrawal_id: uuid.UUID,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    withdrawal = await settlement.mark_completed(
        db, withdrawal_id=withdrawal_id, admin=admin
    )
    return WithdrawalResponse.from_model(withdrawal)


@router.get("/{withdrawal_id}/payout-status", response_model=PayoutStatusResponse)
async def get_payout_status(
    withdrawal_id: uuid.UUID,
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
    payout_client: StripeClient = Depends(get_stripe_client),
):
    return await settlement.get_payout_status(
        db, withdrawal_id=withdrawal_id, payout_client=payout_client
    )


# =============================================================================
# Member Endpoints
# =============================================================================


@router.get("/{profile_id}", response_model=list[WithdrawalResponse])
async def list_profile_withdrawals(
    profile_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    withdrawals = await settlement.list_profile_withdrawals(
        db, profile_id=profile_id, user=current_user
    )
    return [WithdrawalResponse.from_model(w) for w in withdrawals]
