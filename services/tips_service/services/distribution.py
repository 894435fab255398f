"""Tip lifecycle and revenue distribution.

A tip is created pending, paid through Stripe Checkout and credited to the
profile's members exactly once. The pending -> completed flip is a single
conditional UPDATE, so a webhook and a session-status poll racing on the same
payment cannot both distribute it.
"""

import uuid
from dataclasses import dataclass, field
from typing import Optional

from libs.common.config import get_settings
from libs.common.currency import allocate_by_shares, format_amount, to_minor
from libs.common.datetime_utils import utc_now
from libs.common.errors import Conflict, ExternalServiceError, NotFound, ValidationError
from libs.common.logging import get_logger
from libs.common.stripe_client import CheckoutSession, StripeClient, StripeError
from services.profiles_service.services import revenue_share
from services.tips_service.models import Tip, TipStatus
from services.wallet_service.services import wallet_ops
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

COMPLETE = "complete"
ALREADY_PROCESSED = "already_processed"
AMOUNT_MISMATCH = "amount_mismatch"
SESSION_MISMATCH = "session_mismatch"


@dataclass
class MemberCredit:
    user_id: str
    share: float
    amount_minor: int
    credited: bool = True


@dataclass
class DistributionResult:
    tip_id: uuid.UUID
    status: str
    amount_minor: int = 0
    credits: list[MemberCredit] = field(default_factory=list)
    warnings: list[dict] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Tip creation and queries
# ---------------------------------------------------------------------------


async def create_tip(
    db: AsyncSession,
    *,
    profile_id: uuid.UUID,
    amount: float,
    donor_name: str,
    message: Optional[str] = None,
) -> Tip:
    """Record a pending tip. ``amount`` is in major units."""
    settings = get_settings()
    try:
        amount_minor = to_minor(amount)
    except ValueError:
        raise ValidationError("Amount must be a finite number")
    minimum_minor = to_minor(settings.MIN_TIP_AMOUNT)
    if amount_minor < minimum_minor:
        raise ValidationError(
            f"Minimum tip amount is {format_amount(minimum_minor, settings.CURRENCY)}"
        )
    donor_name = (donor_name or "").strip()
    if not donor_name:
        raise ValidationError("Donor name is required")

    await revenue_share.get_profile(db, profile_id)

    tip = Tip(
        profile_id=profile_id,
        donor_name=donor_name,
        message=message,
        amount_minor=amount_minor,
        currency=settings.CURRENCY,
        payment_status=TipStatus.PENDING,
    )
    db.add(tip)
    await db.commit()
    logger.info("Tip %s of %d created for profile %s", tip.id, amount_minor, profile_id)
    return tip


async def get_tip(db: AsyncSession, tip_id: uuid.UUID) -> Tip:
    result = await db.execute(
        select(Tip)
        .where(Tip.id == tip_id)
        .execution_options(populate_existing=True)
    )
    tip = result.scalar_one_or_none()
    if not tip:
        raise NotFound("Tip not found")
    return tip


async def list_completed_tips(
    db: AsyncSession, profile_id: uuid.UUID, *, limit: int = 50
) -> list[Tip]:
    """Tip wall: completed tips, newest first."""
    await revenue_share.get_profile(db, profile_id)
    result = await db.execute(
        select(Tip)
        .where(Tip.profile_id == profile_id, Tip.payment_status == TipStatus.COMPLETED)
        .order_by(Tip.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def mark_tip_failed(db: AsyncSession, tip_id: uuid.UUID) -> bool:
    """Flip a pending tip to failed. Completed tips are never touched."""
    result = await db.execute(
        update(Tip)
        .where(Tip.id == tip_id, Tip.payment_status == TipStatus.PENDING)
        .values(payment_status=TipStatus.FAILED, updated_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    changed = result.rowcount == 1
    if changed:
        logger.info("Tip %s marked failed", tip_id)
    return changed


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------


async def start_checkout(
    db: AsyncSession, *, tip_id: uuid.UUID, stripe: StripeClient
) -> CheckoutSession:
    """Open a Stripe Checkout session for a pending tip."""
    settings = get_settings()
    tip = await get_tip(db, tip_id)
    if tip.payment_status != TipStatus.PENDING:
        raise Conflict(f"Tip is already {tip.payment_status.value}")
    profile = await revenue_share.get_profile(db, tip.profile_id)

    try:
        session = await stripe.create_checkout_session(
            amount_minor=tip.amount_minor,
            currency=tip.currency,
            product_name=f"Tip for {profile.name}",
            success_url=(
                f"{settings.FRONTEND_URL}/payment/success"
                "?session_id={CHECKOUT_SESSION_ID}"
            ),
            cancel_url=f"{settings.FRONTEND_URL}/profile/{profile.id}",
            metadata={"tipId": str(tip.id), "profileId": str(profile.id)},
            idempotency_key=f"tip-checkout-{tip.id}",
        )
    except StripeError as exc:
        logger.error("Checkout session for tip %s failed: %s", tip.id, exc.message)
        raise ExternalServiceError("Could not start checkout") from exc

    tip.stripe_session_id = session.id
    await db.commit()
    logger.info("Checkout session %s opened for tip %s", session.id, tip.id)
    return session


def tip_id_from_session(session: CheckoutSession) -> Optional[uuid.UUID]:
    raw = session.metadata.get("tipId")
    if not raw:
        return None
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        logger.warning("Checkout session %s carries invalid tipId %r", session.id, raw)
        return None


async def confirm_checkout_session(
    db: AsyncSession, session: CheckoutSession
) -> Optional[DistributionResult]:
    """Distribute the tip behind a paid session; None when nothing to do.

    The session must be the one opened for the tip by ``start_checkout``;
    a session naming some other tip in its metadata is refused.
    """
    tip_id = tip_id_from_session(session)
    if tip_id is None:
        logger.warning("Checkout session %s has no tip attached", session.id)
        return None
    if session.payment_status != "paid":
        logger.info(
            "Checkout session %s not paid yet (%s)", session.id, session.payment_status
        )
        return None

    tip = await get_tip(db, tip_id)
    if not session.id or tip.stripe_session_id != session.id:
        logger.warning(
            "Checkout session %s does not belong to tip %s",
            session.id,
            tip_id,
            extra={
                "extra_fields": {
                    "tip_id": str(tip_id),
                    "session_id": session.id,
                    "expected_session_id": tip.stripe_session_id,
                }
            },
        )
        return DistributionResult(
            tip_id=tip_id, status=SESSION_MISMATCH, amount_minor=tip.amount_minor
        )
    return await distribute_tip(db, tip_id, amount_total_minor=session.amount_total)


# ---------------------------------------------------------------------------
# Distribution
# ---------------------------------------------------------------------------


async def distribute_tip(
    db: AsyncSession, tip_id: uuid.UUID, amount_total_minor: Optional[int] = None
) -> DistributionResult:
    """Credit a paid tip to the profile's members, at most once.

    Each member gets ``share / 100`` of the amount (largest-remainder rounding
    in minor units). A profile with no roster credits its owner in full. One
    member's failed credit is recorded in ``distribution_warnings`` and does
    not block the others.
    """
    tip = await get_tip(db, tip_id)

    if tip.payment_status != TipStatus.PENDING:
        logger.info("Tip %s already %s, skipping", tip_id, tip.payment_status.value)
        return DistributionResult(tip_id=tip_id, status=ALREADY_PROCESSED)

    if amount_total_minor is not None and amount_total_minor != tip.amount_minor:
        logger.warning(
            "Tip %s amount mismatch: paid %d, expected %d",
            tip_id,
            amount_total_minor,
            tip.amount_minor,
            extra={
                "extra_fields": {
                    "tip_id": str(tip_id),
                    "paid_minor": amount_total_minor,
                    "expected_minor": tip.amount_minor,
                }
            },
        )
        return DistributionResult(
            tip_id=tip_id, status=AMOUNT_MISMATCH, amount_minor=tip.amount_minor
        )

    claimed = await db.execute(
        update(Tip)
        .where(Tip.id == tip_id, Tip.payment_status == TipStatus.PENDING)
        .values(
            payment_status=TipStatus.COMPLETED,
            distributed_at=utc_now(),
            updated_at=utc_now(),
        )
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount == 0:
        await db.rollback()
        logger.info("Tip %s claimed by a concurrent confirmation", tip_id)
        return DistributionResult(tip_id=tip_id, status=ALREADY_PROCESSED)

    amount = tip.amount_minor
    roster = await revenue_share.get_roster(db, tip.profile_id)
    if roster:
        allocations = allocate_by_shares(amount, [m.revenue_share for m in roster])
        credits = [
            MemberCredit(user_id=m.user_id, share=m.revenue_share, amount_minor=a)
            for m, a in zip(roster, allocations)
        ]
    else:
        profile = await revenue_share.get_profile(db, tip.profile_id)
        credits = [
            MemberCredit(
                user_id=profile.user_id,
                share=revenue_share.FULL_SHARE,
                amount_minor=amount,
            )
        ]

    warnings = []
    for item in credits:
        if item.amount_minor <= 0:
            item.credited = False
            continue
        try:
            async with db.begin_nested():
                await wallet_ops.credit(
                    db, user_id=item.user_id, amount_minor=item.amount_minor
                )
        except SQLAlchemyError as exc:
            item.credited = False
            logger.exception(
                "Credit of %d to %s for tip %s failed",
                item.amount_minor,
                item.user_id,
                tip_id,
            )
            warnings.append(
                {
                    "user_id": item.user_id,
                    "amount_minor": item.amount_minor,
                    "error": str(exc.__class__.__name__),
                }
            )

    if warnings:
        await db.execute(
            update(Tip)
            .where(Tip.id == tip_id)
            .values(distribution_warnings=warnings)
            .execution_options(synchronize_session=False)
        )
    await db.commit()

    logger.info(
        "Tip %s distributed: %d across %d recipients (%d warnings)",
        tip_id,
        amount,
        len(credits),
        len(warnings),
    )
    return DistributionResult(
        tip_id=tip_id,
        status=COMPLETE,
        amount_minor=amount,
        credits=credits,
        warnings=warnings,
    )
