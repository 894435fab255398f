import secrets
import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import ensure_utc, utc_now
from libs.db.base import Base
from services.invites_service.models.enums import InviteStatus, enum_values
from sqlalchemy import DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import Float, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column


class ProfileInvite(Base):
    """A pending offer for someone to join a profile with a proposed share."""

    __tablename__ = "profile_invites"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), index=True, nullable=False
    )
    inviter_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    invitee_email: Mapped[str] = mapped_column(String, index=True, nullable=False)
    invitee_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    revenue_share: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[InviteStatus] = mapped_column(
        SAEnum(
            InviteStatus,
            name="invite_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=InviteStatus.PENDING,
        index=True,
        nullable=False,
    )
    invite_token: Mapped[str] = mapped_column(
        String(64), unique=True, index=True, nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), index=True, nullable=False
    )

    accepted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    rejected_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    @staticmethod
    def generate_token() -> str:
        return secrets.token_urlsafe(32)

    @property
    def is_expired(self) -> bool:
        return ensure_utc(self.expires_at) <= utc_now()

    def __repr__(self) -> str:
        return f"<ProfileInvite {self.id} {self.invitee_email} status={self.status.value}>"
