"""
Model factories for creating valid test data.

Every factory produces a valid, insertable SQLAlchemy model instance.
Override any field via kwargs.

Usage:
    profile = ProfileFactory.create(name="The Buskers")
    db_session.add(profile)
    await db_session.commit()
"""

import uuid
from datetime import datetime, timedelta, timezone

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _uuid() -> uuid.UUID:
    return uuid.uuid4()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _user_id() -> str:
    return f"user-{uuid.uuid4().hex[:8]}"


# ---------------------------------------------------------------------------
# Profiles Service
# ---------------------------------------------------------------------------


class ProfileFactory:
    @staticmethod
    def create(**overrides):
        from services.profiles_service.models import Profile, ProfileRole

        defaults = {
            "id": _uuid(),
            "name": f"Band {uuid.uuid4().hex[:8]}",
            "role": ProfileRole.BUSKER,
            "user_id": _user_id(),
            "bank_account_token": None,
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return Profile(**defaults)


class ProfileMemberFactory:
    @staticmethod
    def create(profile_id=None, **overrides):
        from services.profiles_service.models import MemberRole, ProfileMember

        user_id = overrides.pop("user_id", None) or _user_id()
        defaults = {
            "id": _uuid(),
            "profile_id": profile_id or _uuid(),
            "user_id": user_id,
            "email": f"{user_id}@example.com",
            "role": MemberRole.MEMBER,
            "revenue_share": 0.0,
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return ProfileMember(**defaults)


async def create_profile_with_roster(db, shares, **profile_overrides):
    """Insert a profile whose first member is the owner, one member per share.

    Members get increasing ``created_at`` values so roster order matches
    ``shares``. Returns ``(profile, members)``.
    """
    from services.profiles_service.models import MemberRole

    profile = ProfileFactory.create(**profile_overrides)
    db.add(profile)
    base = _now() - timedelta(minutes=len(shares) + 1)
    members = []
    for index, share in enumerate(shares):
        member = ProfileMemberFactory.create(
            profile_id=profile.id,
            user_id=profile.user_id if index == 0 else None,
            role=MemberRole.OWNER if index == 0 else MemberRole.MEMBER,
            revenue_share=share,
            created_at=base + timedelta(seconds=index),
        )
        db.add(member)
        members.append(member)
    await db.commit()
    return profile, members


# ---------------------------------------------------------------------------
# Invites Service
# ---------------------------------------------------------------------------


class ProfileInviteFactory:
    @staticmethod
    def create(profile_id=None, **overrides):
        from services.invites_service.models import InviteStatus, ProfileInvite

        defaults = {
            "id": _uuid(),
            "profile_id": profile_id or _uuid(),
            "inviter_id": _user_id(),
            "invitee_email": f"invitee-{uuid.uuid4().hex[:8]}@example.com",
            "revenue_share": 50.0,
            "status": InviteStatus.PENDING,
            "invite_token": ProfileInvite.generate_token(),
            "expires_at": _now() + timedelta(days=30),
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return ProfileInvite(**defaults)


# ---------------------------------------------------------------------------
# Tips Service
# ---------------------------------------------------------------------------


class TipFactory:
    @staticmethod
    def create(profile_id=None, **overrides):
        from services.tips_service.models import Tip, TipStatus

        defaults = {
            "id": _uuid(),
            "profile_id": profile_id or _uuid(),
            "donor_name": "Anna",
            "message": "Great show!",
            "amount_minor": 1000,
            "currency": "SEK",
            "payment_status": TipStatus.PENDING,
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return Tip(**defaults)


# ---------------------------------------------------------------------------
# Wallet Service
# ---------------------------------------------------------------------------


class UserWalletFactory:
    @staticmethod
    def create(**overrides):
        from services.wallet_service.models import UserWallet

        defaults = {
            "id": _uuid(),
            "user_id": _user_id(),
            "saldo_minor": 0,
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return UserWallet(**defaults)


# ---------------------------------------------------------------------------
# Withdrawals Service
# ---------------------------------------------------------------------------


class WithdrawalFactory:
    @staticmethod
    def create(profile_id=None, **overrides):
        from services.withdrawals_service.models import Withdrawal, WithdrawalStatus

        defaults = {
            "id": _uuid(),
            "profile_id": profile_id or _uuid(),
            "user_id": _user_id(),
            "amount_minor": 1000,
            "currency": "SEK",
            "status": WithdrawalStatus.PENDING,
            "requested_at": _now(),
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return Withdrawal(**defaults)
