import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.profiles_service.models.enums import MemberRole, ProfileRole, enum_values
from sqlalchemy import DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import Float, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column


class Profile(Base):
    """An individual performer or a band that can receive tips."""

    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    role: Mapped[ProfileRole] = mapped_column(
        SAEnum(
            ProfileRole,
            name="profile_role_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=ProfileRole.BUSKER,
        nullable=False,
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Supabase auth user who created the profile (its owner)
    user_id: Mapped[str] = mapped_column(String, index=True, nullable=False)

    # Opaque Stripe bank-account token; withdrawals require one
    bank_account_token: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    payout_email: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Profile {self.id} name={self.name!r}>"


class ProfileMember(Base):
    """Links a user to a profile with a role and a revenue share percentage."""

    __tablename__ = "profile_members"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), index=True, nullable=False
    )
    user_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String, index=True, nullable=True)

    role: Mapped[MemberRole] = mapped_column(
        SAEnum(
            MemberRole,
            name="member_role_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=MemberRole.MEMBER,
        nullable=False,
    )
    revenue_share: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

    alias: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    specialty: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("profile_id", "user_id", name="uq_profile_member_user"),
    )

    def __repr__(self) -> str:
        return (
            f"<ProfileMember {self.user_id} profile={self.profile_id} "
            f"role={self.role.value} share={self.revenue_share}>"
        )
