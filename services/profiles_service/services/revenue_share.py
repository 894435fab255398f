"""Revenue share registry: profile rosters and proportional re-normalization.

Every write to ``ProfileMember.revenue_share`` goes through this module.
Adding a member locks the profile row first so two concurrent invite
acceptances for the same profile rescale the roster one after the other.
"""

import uuid
from typing import Optional

from libs.common.config import get_settings
from libs.common.errors import Conflict, Forbidden, NotFound
from libs.common.logging import get_logger
from services.profiles_service.models import (
    MANAGER_ROLES,
    MemberRole,
    Profile,
    ProfileMember,
    ProfileRole,
)
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

FULL_SHARE = 100.0


def clamp_share(value: float) -> float:
    """Clamp a percentage into [0, 100]."""
    return min(FULL_SHARE, max(0.0, float(value)))


def default_share(member_count: int) -> float:
    """Equal split including the newcomer: 100 / (members + 1)."""
    return FULL_SHARE / (member_count + 1)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def get_profile(
    db: AsyncSession, profile_id: uuid.UUID, *, for_update: bool = False
) -> Profile:
    """Load a profile or raise NotFound. ``for_update`` takes a row lock."""
    query = select(Profile).where(Profile.id == profile_id)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    profile = result.scalar_one_or_none()
    if not profile:
        raise NotFound("Profile not found")
    return profile


async def get_roster(db: AsyncSession, profile_id: uuid.UUID) -> list[ProfileMember]:
    """All members of a profile in join order."""
    result = await db.execute(
        select(ProfileMember)
        .where(ProfileMember.profile_id == profile_id)
        .order_by(ProfileMember.created_at, ProfileMember.id)
    )
    return list(result.scalars().all())


async def count_members(db: AsyncSession, profile_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(ProfileMember)
        .where(ProfileMember.profile_id == profile_id)
    )
    return result.scalar() or 0


async def get_member(
    db: AsyncSession, profile_id: uuid.UUID, user_id: str
) -> Optional[ProfileMember]:
    result = await db.execute(
        select(ProfileMember).where(
            ProfileMember.profile_id == profile_id,
            ProfileMember.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def find_member_by_email(
    db: AsyncSession, profile_id: uuid.UUID, email: str
) -> Optional[ProfileMember]:
    result = await db.execute(
        select(ProfileMember).where(
            ProfileMember.profile_id == profile_id,
            func.lower(ProfileMember.email) == email.lower(),
        )
    )
    return result.scalars().first()


async def require_member(
    db: AsyncSession, profile_id: uuid.UUID, user_id: str
) -> ProfileMember:
    member = await get_member(db, profile_id, user_id)
    if not member:
        raise Forbidden("Not a member of this profile")
    return member


async def require_manager(
    db: AsyncSession, profile_id: uuid.UUID, user_id: str
) -> ProfileMember:
    """Return the caller's membership if they are owner/admin, else Forbidden."""
    member = await get_member(db, profile_id, user_id)
    if not member or member.role not in MANAGER_ROLES:
        raise Forbidden("Not authorized to manage members of this profile")
    return member


# ---------------------------------------------------------------------------
# Profile creation
# ---------------------------------------------------------------------------


async def create_profile(
    db: AsyncSession,
    *,
    user_id: str,
    email: Optional[str],
    name: str,
    role: ProfileRole = ProfileRole.BUSKER,
    description: Optional[str] = None,
) -> tuple[Profile, ProfileMember]:
    """Create a profile with its creator as owner holding the full share."""
    existing = await db.execute(
        select(Profile.id).where(func.lower(Profile.name) == name.lower())
    )
    if existing.scalar_one_or_none():
        raise Conflict("A profile with this name already exists")

    profile = Profile(name=name, role=role, description=description, user_id=user_id)
    db.add(profile)
    await db.flush()

    owner = ProfileMember(
        profile_id=profile.id,
        user_id=user_id,
        email=email.lower() if email else None,
        role=MemberRole.OWNER,
        revenue_share=FULL_SHARE,
    )
    db.add(owner)
    await db.commit()

    logger.info("Created profile %s (%s) owned by %s", profile.id, name, user_id)
    return profile, owner


# ---------------------------------------------------------------------------
# Roster mutation
# ---------------------------------------------------------------------------


async def add_member(
    db: AsyncSession,
    *,
    profile_id: uuid.UUID,
    user_id: str,
    proposed_share: float,
    email: Optional[str] = None,
    role: MemberRole = MemberRole.MEMBER,
    alias: Optional[str] = None,
    specialty: Optional[str] = None,
    description: Optional[str] = None,
) -> ProfileMember:
    """Insert a member at ``proposed_share``, shrinking existing shares to fit.

    When ``current_total + proposed_share`` exceeds 100, every existing share
    is multiplied by ``(100 - proposed_share) / current_total``. While the
    roster already holds a positive total, the newcomer is capped at
    ``100 - MIN_RETAINED_SHARE`` so existing members are never zeroed out.
    Commits on success.
    """
    settings = get_settings()

    # Serializes concurrent roster changes for this profile
    await get_profile(db, profile_id, for_update=True)

    if await get_member(db, profile_id, user_id):
        raise Conflict("This user is already a member of this profile")

    share = clamp_share(proposed_share)
    roster = await get_roster(db, profile_id)
    current_total = sum(m.revenue_share for m in roster)

    if current_total > 0:
        max_share = FULL_SHARE - clamp_share(settings.MIN_RETAINED_SHARE)
        if share > max_share:
            logger.info(
                "Capping new member share on profile %s from %.2f to %.2f",
                profile_id,
                share,
                max_share,
            )
            share = max_share

        if current_total + share > FULL_SHARE:
            reduction_factor = (FULL_SHARE - share) / current_total
            for existing in roster:
                existing.revenue_share = existing.revenue_share * reduction_factor
            logger.info(
                "Rescaled %d existing shares on profile %s by %.6f",
                len(roster),
                profile_id,
                reduction_factor,
            )

    member = ProfileMember(
        profile_id=profile_id,
        user_id=user_id,
        email=email.lower() if email else None,
        role=role,
        revenue_share=share,
        alias=alias,
        specialty=specialty,
        description=description,
    )
    db.add(member)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict("This user is already a member of this profile")

    logger.info(
        "Added %s to profile %s as %s with %.2f%% share",
        user_id,
        profile_id,
        role.value,
        share,
    )
    return member


async def update_member_info(
    db: AsyncSession,
    *,
    profile_id: uuid.UUID,
    user_id: str,
    alias: Optional[str] = None,
    specialty: Optional[str] = None,
    description: Optional[str] = None,
) -> ProfileMember:
    """Update display fields of the caller's own membership."""
    member = await require_member(db, profile_id, user_id)
    if alias is not None:
        member.alias = alias
    if specialty is not None:
        member.specialty = specialty
    if description is not None:
        member.description = description
    await db.commit()
    return member


async def set_bank_account(
    db: AsyncSession,
    *,
    profile_id: uuid.UUID,
    user_id: str,
    bank_account_token: str,
    payout_email: Optional[str] = None,
) -> Profile:
    """Store the opaque bank-account token. Only the profile owner may do this."""
    profile = await get_profile(db, profile_id)
    if profile.user_id != user_id:
        raise Forbidden("Only the profile owner can set bank details")
    profile.bank_account_token = bank_account_token
    if payout_email is not None:
        profile.payout_email = payout_email
    await db.commit()
    logger.info("Bank account updated for profile %s", profile_id)
    return profile
