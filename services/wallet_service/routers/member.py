"""Member-facing wallet endpoints."""

from fastapi import APIRouter, Depends
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.common.currency import format_amount, to_major
from libs.db.session import get_async_db
from services.wallet_service.schemas import WalletResponse
from services.wallet_service.services import wallet_ops
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/api/wallet", tags=["wallet"])


@router.get("/me", response_model=WalletResponse)
async def get_my_wallet(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Caller's saldo across every profile they belong to."""
    currency = get_settings().CURRENCY
    balance = await wallet_ops.get_balance(db, current_user.user_id)
    return WalletResponse(
        user_id=current_user.user_id,
        saldo=to_major(balance),
        saldo_minor=balance,
        currency=currency,
        formatted=format_amount(balance, currency),
    )
