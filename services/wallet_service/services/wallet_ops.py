"""Core wallet operations: atomic saldo credit/debit.

Balances are changed with a single conditional UPDATE each, never read and
written back, so concurrent tips and withdrawals cannot lose an update. The
functions flush but do not commit: the caller owns the transaction, which
lets tip distribution wrap each member credit in its own savepoint.
"""

from libs.common.config import get_settings
from libs.common.currency import format_amount
from libs.common.datetime_utils import utc_now
from libs.common.errors import InsufficientFunds, ValidationError
from libs.common.logging import get_logger
from services.wallet_service.models import UserWallet
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Balance (read-only)
# ---------------------------------------------------------------------------


async def get_balance(db: AsyncSession, user_id: str) -> int:
    """Current saldo in minor units; 0 when the user has no wallet yet."""
    result = await db.execute(
        select(UserWallet.saldo_minor).where(UserWallet.user_id == user_id)
    )
    return result.scalar_one_or_none() or 0


async def get_wallet(db: AsyncSession, user_id: str) -> UserWallet | None:
    result = await db.execute(select(UserWallet).where(UserWallet.user_id == user_id))
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Credit (atomic, creates the wallet lazily)
# ---------------------------------------------------------------------------


def _increment(user_id: str, amount_minor: int):
    return (
        update(UserWallet)
        .where(UserWallet.user_id == user_id)
        .values(saldo_minor=UserWallet.saldo_minor + amount_minor, updated_at=utc_now())
        .execution_options(synchronize_session=False)
    )


async def credit(db: AsyncSession, *, user_id: str, amount_minor: int) -> int:
    """Add ``amount_minor`` to the user's saldo and return the new balance."""
    if amount_minor <= 0:
        raise ValidationError("Credit amount must be greater than 0")

    result = await db.execute(_increment(user_id, amount_minor))
    if result.rowcount == 0:
        try:
            async with db.begin_nested():
                db.add(UserWallet(user_id=user_id, saldo_minor=amount_minor))
            logger.info("Created wallet for user %s", user_id)
        except IntegrityError:
            # A concurrent request created the wallet first; increment it instead
            result = await db.execute(_increment(user_id, amount_minor))
            if result.rowcount == 0:
                raise

    balance = await get_balance(db, user_id)
    logger.info("Credit %d to wallet of %s, saldo now %d", amount_minor, user_id, balance)
    return balance


# ---------------------------------------------------------------------------
# Debit (atomic, never below zero)
# ---------------------------------------------------------------------------


async def debit(db: AsyncSession, *, user_id: str, amount_minor: int) -> int:
    """Subtract ``amount_minor`` from the user's saldo and return the new balance.

    The guard ``saldo_minor >= amount`` lives in the UPDATE itself, so the
    balance check and the write cannot be separated by another request.
    """
    if amount_minor <= 0:
        raise ValidationError("Debit amount must be greater than 0")

    result = await db.execute(
        update(UserWallet)
        .where(
            UserWallet.user_id == user_id,
            UserWallet.saldo_minor >= amount_minor,
        )
        .values(saldo_minor=UserWallet.saldo_minor - amount_minor, updated_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        available = await get_balance(db, user_id)
        logger.warning(
            "Debit of %d refused for %s, saldo is %d", amount_minor, user_id, available
        )
        raise InsufficientFunds(
            f"Insufficient saldo. Available: {format_amount(available, get_settings().CURRENCY)}"
        )

    balance = await get_balance(db, user_id)
    logger.info("Debit %d from wallet of %s, saldo now %d", amount_minor, user_id, balance)
    return balance
