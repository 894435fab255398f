"""Stripe payment confirmation: webhook and session-status polling."""

import json
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from libs.common.config import get_settings
from libs.common.currency import to_major
from libs.common.errors import ExternalServiceError, NotFound
from libs.common.logging import get_logger
from libs.common.stripe_client import (
    CheckoutSession,
    StripeClient,
    StripeError,
    get_stripe_client,
    verify_webhook_signature,
)
from libs.db.session import get_async_db
from services.tips_service.schemas import (
    DistributionResponse,
    MemberCreditResponse,
    SessionStatusResponse,
)
from services.tips_service.services import distribution
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/api/checkout", tags=["checkout"])
logger = get_logger(__name__)

PAID_EVENTS = {"checkout.session.completed", "checkout.session.async_payment_succeeded"}
FAILED_EVENTS = {"checkout.session.expired", "checkout.session.async_payment_failed"}


def _to_response(
    result: Optional[distribution.DistributionResult],
) -> Optional[DistributionResponse]:
    if result is None:
        return None
    return DistributionResponse(
        tip_id=result.tip_id,
        status=result.status,
        amount=to_major(result.amount_minor),
        credits=[
            MemberCreditResponse(
                user_id=c.user_id,
                share=c.share,
                amount=to_major(c.amount_minor),
                credited=c.credited,
            )
            for c in result.credits
        ],
        warnings=result.warnings,
    )


@router.post("/webhook")
async def stripe_webhook(request: Request, db: AsyncSession = Depends(get_async_db)):
    """
    Stripe webhook endpoint (no auth; every event must carry a valid
    Stripe-Signature for the configured webhook secret).
    """
    settings = get_settings()
    raw = await request.body()
    if not settings.STRIPE_WEBHOOK_SECRET:
        logger.error("Rejecting Stripe webhook: STRIPE_WEBHOOK_SECRET is not configured")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature"
        )
    signature = request.headers.get("stripe-signature")
    if not verify_webhook_signature(raw, signature, settings.STRIPE_WEBHOOK_SECRET):
        logger.warning("Rejecting Stripe webhook with invalid signature")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature"
        )

    try:
        payload = json.loads(raw.decode("utf-8") or "{}")
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payload"
        )

    event = payload.get("type")
    data = (payload.get("data") or {}).get("object") or {}
    session = CheckoutSession.from_api(data)

    if event in PAID_EVENTS:
        try:
            result = await distribution.confirm_checkout_session(db, session)
        except NotFound:
            logger.warning("Webhook for unknown tip on session %s", session.id)
            return {"received": True}
        return {
            "received": True,
            "status": result.status if result else None,
        }

    if event in FAILED_EVENTS:
        tip_id = distribution.tip_id_from_session(session)
        if tip_id:
            await distribution.mark_tip_failed(db, tip_id)
        return {"received": True}

    logger.info("Ignoring Stripe event %s", event)
    return {"received": True}


@router.get("/session-status", response_model=SessionStatusResponse)
async def session_status(
    session_id: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_async_db),
    stripe: StripeClient = Depends(get_stripe_client),
):
    """Polling fallback for the payment success page."""
    try:
        session = await stripe.retrieve_checkout_session(session_id)
    except StripeError as exc:
        logger.error("Could not retrieve checkout session %s: %s", session_id, exc.message)
        raise ExternalServiceError("Could not retrieve checkout session") from exc

    result = await distribution.confirm_checkout_session(db, session)
    return SessionStatusResponse(
        session_id=session.id,
        status=session.status,
        payment_status=session.payment_status,
        amount_total=(
            to_major(session.amount_total) if session.amount_total is not None else None
        ),
        tip_id=distribution.tip_id_from_session(session),
        distribution=_to_response(result),
    )
