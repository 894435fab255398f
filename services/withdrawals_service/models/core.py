import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.withdrawals_service.models.enums import (
    PayoutMethod,
    WithdrawalStatus,
    enum_values,
)
from sqlalchemy import BigInteger, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column


class Withdrawal(Base):
    """A request to move saldo out of the platform to the owner's bank account."""

    __tablename__ = "withdrawals"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), index=True, nullable=False
    )
    # Wallet owner debited on approval
    user_id: Mapped[str] = mapped_column(String, index=True, nullable=False)

    amount_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[WithdrawalStatus] = mapped_column(
        SAEnum(
            WithdrawalStatus,
            name="withdrawal_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=WithdrawalStatus.PENDING,
        index=True,
        nullable=False,
    )

    # Payout tracking
    payout_method: Mapped[Optional[PayoutMethod]] = mapped_column(
        SAEnum(
            PayoutMethod,
            name="payout_method_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=True,
    )
    stripe_payout_id: Mapped[Optional[str]] = mapped_column(
        String, index=True, nullable=True
    )
    payout_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    processed_by: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        CheckConstraint("amount_minor > 0", name="ck_withdrawal_amount_positive"),
    )

    def __repr__(self) -> str:
        return (
            f"<Withdrawal {self.id} profile={self.profile_id} "
            f"{self.amount_minor} {self.currency} {self.status.value}>"
        )
