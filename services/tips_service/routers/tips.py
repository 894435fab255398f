"""Public tip endpoints."""

import uuid

from fastapi import APIRouter, Depends, Query, status
from libs.common.stripe_client import StripeClient, get_stripe_client
from libs.db.session import get_async_db
from services.tips_service.schemas import CheckoutResponse, TipCreate, TipResponse
from services.tips_service.services import distribution
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/api/tips", tags=["tips"])


@router.post("", response_model=TipResponse, status_code=status.HTTP_201_CREATED)
async def create_tip(body: TipCreate, db: AsyncSession = Depends(get_async_db)):
    """Record a pending tip; no sign-in required."""
    tip = await distribution.create_tip(
        db,
        profile_id=body.profile_id,
        amount=body.amount,
        donor_name=body.donor_name,
        message=body.message,
    )
    return TipResponse.from_model(tip)


@router.get("/profile/{profile_id}", response_model=list[TipResponse])
async def list_profile_tips(
    profile_id: uuid.UUID,
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_async_db),
):
    tips = await distribution.list_completed_tips(db, profile_id, limit=limit)
    return [TipResponse.from_model(tip) for tip in tips]


@router.post("/{tip_id}/checkout", response_model=CheckoutResponse)
async def create_checkout(
    tip_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_db),
    stripe: StripeClient = Depends(get_stripe_client),
):
    session = await distribution.start_checkout(db, tip_id=tip_id, stripe=stripe)
    return CheckoutResponse(session_id=session.id, url=session.url)
