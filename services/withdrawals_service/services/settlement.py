"""Withdrawal settlement: request, admin review, wallet debit and Stripe payout.

Status moves pending -> approved -> completed or pending -> rejected, never
backwards. Funds leave the wallet at approval; the payout is attempted after
the approval is committed, and a failed payout is recorded on the withdrawal
(``payout_method=manual``) for the finance team instead of being raised.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.common.currency import format_amount, to_major, to_minor
from libs.common.datetime_utils import utc_now
from libs.common.errors import (
    BankAccountRequired,
    Conflict,
    ExternalServiceError,
    Forbidden,
    InsufficientFunds,
    NotFound,
    ValidationError,
)
from libs.common.logging import get_logger
from libs.common.stripe_client import StripeClient, StripeError
from services.profiles_service.models import Profile
from services.profiles_service.services import revenue_share
from services.wallet_service.services import wallet_ops
from services.withdrawals_service.models import (
    PayoutMethod,
    Withdrawal,
    WithdrawalStatus,
)
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass
class PayoutAttempt:
    success: bool
    payout_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class ApprovalResult:
    withdrawal: Withdrawal
    new_balance_minor: int
    payout: PayoutAttempt


async def get_withdrawal(
    db: AsyncSession, withdrawal_id: uuid.UUID, *, for_update: bool = False
) -> Withdrawal:
    query = (
        select(Withdrawal)
        .where(Withdrawal.id == withdrawal_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    withdrawal = result.scalar_one_or_none()
    if not withdrawal:
        raise NotFound("Withdrawal not found")
    return withdrawal


# ---------------------------------------------------------------------------
# Request and listing
# ---------------------------------------------------------------------------


async def request_withdrawal(
    db: AsyncSession,
    *,
    user: AuthUser,
    profile_id: uuid.UUID,
    amount: float,
    notes: Optional[str] = None,
) -> Withdrawal:
    """Create a pending withdrawal for the profile owner's saldo.

    Nothing is debited yet; the balance is checked again at approval.
    """
    settings = get_settings()
    try:
        amount_minor = to_minor(amount)
    except ValueError:
        raise ValidationError("Amount must be a finite number")
    if amount_minor <= 0:
        raise ValidationError("Amount must be greater than 0")

    profile = await revenue_share.get_profile(db, profile_id)
    if profile.user_id != user.user_id:
        raise Forbidden("Only the profile owner can request withdrawals")
    if not profile.bank_account_token:
        raise BankAccountRequired()

    available = await wallet_ops.get_balance(db, user.user_id)
    if amount_minor > available:
        raise InsufficientFunds(
            f"Insufficient saldo. Available: {format_amount(available, settings.CURRENCY)}"
        )

    withdrawal = Withdrawal(
        profile_id=profile_id,
        user_id=user.user_id,
        amount_minor=amount_minor,
        currency=settings.CURRENCY,
        status=WithdrawalStatus.PENDING,
        notes=notes,
        requested_at=utc_now(),
    )
    db.add(withdrawal)
    await db.commit()

    logger.info(
        f"Withdrawal {withdrawal.id} requested for profile {profile_id}",
        extra={
            "extra_fields": {
                "withdrawal_id": str(withdrawal.id),
                "amount_minor": amount_minor,
                "user_id": user.user_id,
            }
        },
    )
    return withdrawal


async def list_profile_withdrawals(
    db: AsyncSession, *, profile_id: uuid.UUID, user: AuthUser
) -> list[Withdrawal]:
    """Withdrawals of a profile, newest first. Members and admins only."""
    await revenue_share.get_profile(db, profile_id)
    if not user.is_admin:
        await revenue_share.require_member(db, profile_id, user.user_id)

    result = await db.execute(
        select(Withdrawal)
        .where(Withdrawal.profile_id == profile_id)
        .order_by(Withdrawal.requested_at.desc())
    )
    return list(result.scalars().all())


async def list_all_withdrawals(
    db: AsyncSession, *, status: Optional[WithdrawalStatus] = None
) -> list[tuple[Withdrawal, str]]:
    """Every withdrawal with its profile name, newest first (admin)."""
    query = select(Withdrawal, Profile.name).join(
        Profile, Profile.id == Withdrawal.profile_id
    )
    if status:
        query = query.where(Withdrawal.status == status)
    result = await db.execute(query.order_by(Withdrawal.requested_at.desc()))
    return [(withdrawal, name) for withdrawal, name in result.all()]


# ---------------------------------------------------------------------------
# Admin transitions
# ---------------------------------------------------------------------------


async def _attempt_payout(
    db: AsyncSession, withdrawal: Withdrawal, payout_client: StripeClient
) -> PayoutAttempt:
    """Try a Stripe payout for an approved withdrawal and record the outcome."""
    try:
        payout = await payout_client.create_payout(
            amount_minor=withdrawal.amount_minor,
            currency=withdrawal.currency,
            description=f"GoBusker withdrawal {withdrawal.id}",
            idempotency_key=f"withdrawal-{withdrawal.id}",
        )
    except StripeError as exc:
        withdrawal.payout_method = PayoutMethod.MANUAL
        withdrawal.payout_error = exc.message
        await db.commit()
        logger.warning(
            "Automatic payout failed for withdrawal %s, manual transfer needed: %s",
            withdrawal.id,
            exc.message,
        )
        return PayoutAttempt(success=False, error=f"Manual payout required: {exc.message}")

    withdrawal.payout_method = PayoutMethod.STRIPE
    withdrawal.stripe_payout_id = payout.id
    withdrawal.payout_error = None
    await db.commit()
    logger.info("Payout %s created for withdrawal %s", payout.id, withdrawal.id)
    return PayoutAttempt(success=True, payout_id=payout.id)


async def approve_withdrawal(
    db: AsyncSession,
    *,
    withdrawal_id: uuid.UUID,
    admin: AuthUser,
    payout_client: StripeClient,
) -> ApprovalResult:
    """Debit the owner's wallet, approve, then attempt the payout.

    If the saldo no longer covers the amount the withdrawal stays pending and
    InsufficientFunds is raised. A payout failure does not undo the approval.
    """
    withdrawal = await get_withdrawal(db, withdrawal_id, for_update=True)
    if withdrawal.status != WithdrawalStatus.PENDING:
        raise Conflict(f"Withdrawal is already {withdrawal.status.value}")

    try:
        new_balance = await wallet_ops.debit(
            db, user_id=withdrawal.user_id, amount_minor=withdrawal.amount_minor
        )
    except InsufficientFunds:
        await db.rollback()
        raise

    withdrawal.status = WithdrawalStatus.APPROVED
    withdrawal.processed_at = utc_now()
    withdrawal.processed_by = admin.user_id
    await db.commit()

    logger.info(
        f"Withdrawal {withdrawal.id} approved by {admin.user_id}",
        extra={
            "extra_fields": {
                "withdrawal_id": str(withdrawal.id),
                "amount_minor": withdrawal.amount_minor,
                "new_balance_minor": new_balance,
            }
        },
    )

    payout = await _attempt_payout(db, withdrawal, payout_client)
    return ApprovalResult(
        withdrawal=withdrawal, new_balance_minor=new_balance, payout=payout
    )


async def reject_withdrawal(
    db: AsyncSession,
    *,
    withdrawal_id: uuid.UUID,
    admin: AuthUser,
    notes: Optional[str] = None,
) -> Withdrawal:
    """Refuse a pending withdrawal. The wallet is untouched."""
    withdrawal = await get_withdrawal(db, withdrawal_id, for_update=True)
    if withdrawal.status != WithdrawalStatus.PENDING:
        raise Conflict(f"Cannot reject withdrawal with status: {withdrawal.status.value}")

    withdrawal.status = WithdrawalStatus.REJECTED
    withdrawal.processed_at = utc_now()
    withdrawal.processed_by = admin.user_id
    if notes:
        withdrawal.notes = notes
    await db.commit()
    logger.info(f"Withdrawal {withdrawal.id} rejected by {admin.user_id}")
    return withdrawal


async def mark_completed(
    db: AsyncSession, *, withdrawal_id: uuid.UUID, admin: AuthUser
) -> Withdrawal:
    """Confirm the money has reached the bank account."""
    withdrawal = await get_withdrawal(db, withdrawal_id, for_update=True)
    if withdrawal.status != WithdrawalStatus.APPROVED:
        raise Conflict(
            f"Only approved withdrawals can be completed (status: {withdrawal.status.value})"
        )

    withdrawal.status = WithdrawalStatus.COMPLETED
    withdrawal.processed_at = utc_now()
    withdrawal.processed_by = admin.user_id
    await db.commit()
    logger.info(f"Withdrawal {withdrawal.id} marked completed by {admin.user_id}")
    return withdrawal


# ---------------------------------------------------------------------------
# Payout reconciliation
# ---------------------------------------------------------------------------


async def get_payout_status(
    db: AsyncSession, *, withdrawal_id: uuid.UUID, payout_client: StripeClient
) -> dict:
    withdrawal = await get_withdrawal(db, withdrawal_id)
    if not withdrawal.stripe_payout_id:
        return {
            "withdrawal_id": withdrawal.id,
            "status": "no_payout",
            "payout_method": withdrawal.payout_method,
            "payout_error": withdrawal.payout_error,
        }

    try:
        payout = await payout_client.retrieve_payout(withdrawal.stripe_payout_id)
    except StripeError as exc:
        logger.error(
            "Could not retrieve payout %s: %s", withdrawal.stripe_payout_id, exc.message
        )
        raise ExternalServiceError("Could not retrieve payout status") from exc

    return {
        "withdrawal_id": withdrawal.id,
        "status": payout.status,
        "payout_id": payout.id,
        "payout_method": withdrawal.payout_method,
        "amount": to_major(payout.amount),
        "currency": payout.currency,
        "arrival_date": payout.arrival_date,
        "failure_code": payout.failure_code,
        "failure_message": payout.failure_message,
    }


async def bulk_process(
    db: AsyncSession, *, payout_client: StripeClient
) -> list[dict]:
    """Retry payouts for approved withdrawals that have no Stripe payout yet."""
    result = await db.execute(
        select(Withdrawal)
        .where(
            Withdrawal.status == WithdrawalStatus.APPROVED,
            Withdrawal.stripe_payout_id.is_(None),
        )
        .order_by(Withdrawal.requested_at)
    )
    withdrawals = list(result.scalars().all())

    results = []
    for withdrawal in withdrawals:
        attempt = await _attempt_payout(db, withdrawal, payout_client)
        results.append(
            {
                "withdrawal_id": withdrawal.id,
                "success": attempt.success,
                "payout_id": attempt.payout_id,
                "error": attempt.error,
            }
        )

    logger.info(
        "Bulk payout processed %d withdrawals, %d succeeded",
        len(results),
        sum(1 for r in results if r["success"]),
    )
    return results
