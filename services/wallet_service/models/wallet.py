"""UserWallet model: one saldo per user, shared by all their profiles."""

import uuid
from datetime import datetime

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from sqlalchemy import BigInteger, CheckConstraint, DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column


class UserWallet(Base):
    """Aggregate withdrawable balance for a user. Created lazily on first credit.

    ``saldo_minor`` is only ever changed through ``wallet_ops.credit`` and
    ``wallet_ops.debit``.
    """

    __tablename__ = "user_wallets"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    saldo_minor: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        CheckConstraint("saldo_minor >= 0", name="ck_user_wallet_saldo_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<UserWallet {self.id} user_id={self.user_id} saldo_minor={self.saldo_minor}>"
