import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.tips_service.models.enums import TipStatus, enum_values
from sqlalchemy import JSON, BigInteger, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column


class Tip(Base):
    """A one-off payment from the audience to a profile."""

    __tablename__ = "tips"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), index=True, nullable=False
    )
    donor_name: Mapped[str] = mapped_column(String(120), nullable=False)
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    amount_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    payment_status: Mapped[TipStatus] = mapped_column(
        SAEnum(
            TipStatus,
            name="tip_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=TipStatus.PENDING,
        index=True,
        nullable=False,
    )
    stripe_session_id: Mapped[Optional[str]] = mapped_column(
        String, unique=True, index=True, nullable=True
    )

    # Set once, when the tip is credited to member wallets
    distributed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    # Per-member credit failures: [{"user_id", "amount_minor", "error"}]
    distribution_warnings: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (CheckConstraint("amount_minor > 0", name="ck_tip_amount_positive"),)

    def __repr__(self) -> str:
        return (
            f"<Tip {self.id} profile={self.profile_id} "
            f"{self.amount_minor} {self.currency} {self.payment_status.value}>"
        )
