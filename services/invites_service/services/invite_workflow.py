"""Membership invite workflow.

An invite moves from ``pending`` to exactly one of accepted / rejected /
cancelled / expired. Accepting it is the only path that touches revenue
shares, through ``revenue_share.add_member``.
"""

import uuid
from typing import Optional

from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.common.datetime_utils import days_from_now, utc_now
from libs.common.emails.core import is_email_configured
from libs.common.emails.invites import send_invite_email
from libs.common.errors import Conflict, Expired, Forbidden, NotFound, ValidationError
from libs.common.logging import get_logger
from services.invites_service.models import InviteStatus, ProfileInvite
from services.profiles_service.models import Profile, ProfileMember
from services.profiles_service.services import revenue_share
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

EMAIL_NOT_CONFIGURED_WARNING = (
    "Invite created but email service not configured. Share the invite link manually."
)
EMAIL_FAILED_WARNING = (
    "Invite created but email failed to send. Share the invite link manually."
)


def _pending_and_live():
    return (
        ProfileInvite.status == InviteStatus.PENDING,
        ProfileInvite.expires_at > utc_now(),
    )


def invite_url(token: str) -> str:
    return f"{get_settings().FRONTEND_URL}/invite/{token}"


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


async def create_invite(
    db: AsyncSession,
    *,
    inviter: AuthUser,
    profile_id: uuid.UUID,
    invitee_email: str,
    proposed_share: Optional[float] = None,
) -> tuple[ProfileInvite, Optional[str]]:
    """Create a pending invite and try to email it.

    Returns ``(invite, warning)``; ``warning`` is set when the email could not
    be delivered, in which case the inviter should share the link manually.
    """
    settings = get_settings()
    email = invitee_email.strip().lower()
    if not email:
        raise ValidationError("Missing required fields")

    await revenue_share.require_manager(db, profile_id, inviter.user_id)
    profile = await revenue_share.get_profile(db, profile_id)

    if await revenue_share.find_member_by_email(db, profile_id, email):
        raise Conflict("This user is already a member of this profile")

    existing = await db.execute(
        select(ProfileInvite.id).where(
            ProfileInvite.profile_id == profile_id,
            ProfileInvite.invitee_email == email,
            *_pending_and_live(),
        )
    )
    if existing.scalars().first():
        raise Conflict("An invite is already pending for this email")

    if proposed_share is None:
        member_count = await revenue_share.count_members(db, profile_id)
        proposed_share = revenue_share.default_share(member_count)

    invite = ProfileInvite(
        profile_id=profile_id,
        inviter_id=inviter.user_id,
        invitee_email=email,
        revenue_share=revenue_share.clamp_share(proposed_share),
        status=InviteStatus.PENDING,
        invite_token=ProfileInvite.generate_token(),
        expires_at=days_from_now(settings.INVITE_TTL_DAYS),
    )
    db.add(invite)
    await db.commit()

    logger.info(
        "Invite %s created for %s on profile %s (share %.2f%%)",
        invite.id,
        email,
        profile_id,
        invite.revenue_share,
    )

    if not is_email_configured():
        return invite, EMAIL_NOT_CONFIGURED_WARNING

    sent = await send_invite_email(
        to_email=email,
        profile_name=profile.name,
        inviter_name=inviter.display_name,
        revenue_share=invite.revenue_share,
        invite_url=invite_url(invite.invite_token),
        expires_in_days=settings.INVITE_TTL_DAYS,
    )
    return invite, None if sent else EMAIL_FAILED_WARNING


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def list_profile_invites(
    db: AsyncSession, *, profile_id: uuid.UUID, user_id: str
) -> list[ProfileInvite]:
    """Pending, unexpired invites of a profile (owner/admin only)."""
    await revenue_share.require_manager(db, profile_id, user_id)
    result = await db.execute(
        select(ProfileInvite)
        .where(ProfileInvite.profile_id == profile_id, *_pending_and_live())
        .order_by(ProfileInvite.created_at.desc())
    )
    return list(result.scalars().all())


async def list_my_invites(
    db: AsyncSession, *, user: AuthUser
) -> list[tuple[ProfileInvite, Profile]]:
    """Pending invites addressed to the caller's email or user id."""
    if not user.normalized_email:
        raise ValidationError("Not authenticated")

    result = await db.execute(
        select(ProfileInvite, Profile)
        .join(Profile, Profile.id == ProfileInvite.profile_id)
        .where(
            *_pending_and_live(),
            or_(
                ProfileInvite.invitee_email == user.normalized_email,
                ProfileInvite.invitee_id == user.user_id,
            ),
        )
        .order_by(ProfileInvite.created_at.desc())
    )
    return [(invite, profile) for invite, profile in result.all()]


async def get_invite_by_token(
    db: AsyncSession, token: str
) -> tuple[ProfileInvite, Profile]:
    """Public lookup behind invite links."""
    result = await db.execute(
        select(ProfileInvite, Profile)
        .join(Profile, Profile.id == ProfileInvite.profile_id)
        .where(ProfileInvite.invite_token == token, *_pending_and_live())
    )
    row = result.first()
    if not row:
        raise NotFound("Invite not found or expired")
    return row[0], row[1]


async def _load_pending(db: AsyncSession, token: str) -> ProfileInvite:
    """Lock a pending invite by token, expiring it if its time has passed."""
    result = await db.execute(
        select(ProfileInvite)
        .where(ProfileInvite.invite_token == token)
        .with_for_update()
    )
    invite = result.scalar_one_or_none()
    if not invite or invite.status != InviteStatus.PENDING:
        raise NotFound("Invite not found or expired")

    if invite.is_expired:
        invite.status = InviteStatus.EXPIRED
        await db.commit()
        logger.info("Invite %s expired on access", invite.id)
        raise Expired()

    return invite


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


async def accept_invite(
    db: AsyncSession, *, token: str, user: AuthUser
) -> tuple[ProfileInvite, ProfileMember]:
    """Accept an invite and join the roster with the invite's share.

    The invite is committed as accepted before the member is inserted; if the
    insert fails the invite is put back to pending and the error re-raised.
    """
    invite = await _load_pending(db, token)

    if invite.invitee_email != user.normalized_email:
        raise Forbidden("This invite was not sent to your email")

    if await revenue_share.get_member(db, invite.profile_id, user.user_id):
        raise Conflict("You are already a member of this profile")

    invite_id = invite.id
    profile_id = invite.profile_id
    share = invite.revenue_share

    invite.status = InviteStatus.ACCEPTED
    invite.invitee_id = user.user_id
    invite.accepted_at = utc_now()
    await db.commit()

    try:
        member = await revenue_share.add_member(
            db,
            profile_id=profile_id,
            user_id=user.user_id,
            proposed_share=share,
            email=user.normalized_email,
        )
    except Exception:
        logger.exception("Adding member for invite %s failed, reverting invite", invite_id)
        await db.rollback()
        await db.execute(
            update(ProfileInvite)
            .where(ProfileInvite.id == invite_id)
            .values(status=InviteStatus.PENDING, invitee_id=None, accepted_at=None)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        raise

    logger.info("Invite %s accepted by %s", invite_id, user.user_id)
    return invite, member


async def reject_invite(db: AsyncSession, *, token: str, user: AuthUser) -> ProfileInvite:
    """Invitee declines. No effect on revenue shares."""
    invite = await _load_pending(db, token)
    if invite.invitee_email != user.normalized_email:
        raise Forbidden("This invite was not sent to your email")

    invite.status = InviteStatus.REJECTED
    invite.rejected_at = utc_now()
    await db.commit()
    logger.info("Invite %s rejected", invite.id)
    return invite


async def cancel_invite(
    db: AsyncSession, *, invite_id: uuid.UUID, user_id: str
) -> ProfileInvite:
    """Owner/admin withdraws a pending invite."""
    invite = await db.get(ProfileInvite, invite_id)
    if not invite:
        raise NotFound("Invite not found")

    await revenue_share.require_manager(db, invite.profile_id, user_id)

    if invite.status != InviteStatus.PENDING:
        raise Conflict(f"Cannot cancel invite with status: {invite.status.value}")

    invite.status = InviteStatus.CANCELLED
    invite.cancelled_at = utc_now()
    await db.commit()
    logger.info("Invite %s cancelled by %s", invite_id, user_id)
    return invite
