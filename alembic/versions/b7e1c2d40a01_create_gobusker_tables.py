"""create_gobusker_tables

Revision ID: b7e1c2d40a01
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "b7e1c2d40a01"
down_revision = None
branch_labels = None
depends_on = None


profile_role_enum = sa.Enum("busker", "eventmaker", "viewer", name="profile_role_enum")
member_role_enum = sa.Enum("owner", "admin", "member", name="member_role_enum")
invite_status_enum = sa.Enum(
    "pending", "accepted", "rejected", "cancelled", "expired", name="invite_status_enum"
)
tip_status_enum = sa.Enum("pending", "completed", "failed", name="tip_status_enum")
withdrawal_status_enum = sa.Enum(
    "pending", "approved", "completed", "rejected", name="withdrawal_status_enum"
)
payout_method_enum = sa.Enum("stripe", "manual", name="payout_method_enum")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False, unique=True),
        sa.Column("role", profile_role_enum, nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("bank_account_token", sa.String(), nullable=True),
        sa.Column("payout_email", sa.String(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_profiles_user_id", "profiles", ["user_id"])

    op.create_table(
        "profile_members",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "profile_id",
            sa.Uuid(),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("role", member_role_enum, nullable=False),
        sa.Column("revenue_share", sa.Float(), nullable=False),
        sa.Column("alias", sa.String(length=120), nullable=True),
        sa.Column("specialty", sa.String(length=120), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("profile_id", "user_id", name="uq_profile_member_user"),
    )
    op.create_index("ix_profile_members_profile_id", "profile_members", ["profile_id"])
    op.create_index("ix_profile_members_user_id", "profile_members", ["user_id"])
    op.create_index("ix_profile_members_email", "profile_members", ["email"])

    op.create_table(
        "profile_invites",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "profile_id",
            sa.Uuid(),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("inviter_id", sa.String(), nullable=False),
        sa.Column("invitee_email", sa.String(), nullable=False),
        sa.Column("invitee_id", sa.String(), nullable=True),
        sa.Column("revenue_share", sa.Float(), nullable=False),
        sa.Column("status", invite_status_enum, nullable=False),
        sa.Column("invite_token", sa.String(length=64), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_profile_invites_profile_id", "profile_invites", ["profile_id"])
    op.create_index("ix_profile_invites_inviter_id", "profile_invites", ["inviter_id"])
    op.create_index(
        "ix_profile_invites_invitee_email", "profile_invites", ["invitee_email"]
    )
    op.create_index("ix_profile_invites_status", "profile_invites", ["status"])
    op.create_index(
        "ix_profile_invites_invite_token", "profile_invites", ["invite_token"], unique=True
    )
    op.create_index("ix_profile_invites_expires_at", "profile_invites", ["expires_at"])

    op.create_table(
        "tips",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "profile_id",
            sa.Uuid(),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("donor_name", sa.String(length=120), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("amount_minor", sa.BigInteger(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("payment_status", tip_status_enum, nullable=False),
        sa.Column("stripe_session_id", sa.String(), nullable=True),
        sa.Column("distributed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("distribution_warnings", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("amount_minor > 0", name="ck_tip_amount_positive"),
    )
    op.create_index("ix_tips_profile_id", "tips", ["profile_id"])
    op.create_index("ix_tips_payment_status", "tips", ["payment_status"])
    op.create_index(
        "ix_tips_stripe_session_id", "tips", ["stripe_session_id"], unique=True
    )

    op.create_table(
        "user_wallets",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("saldo_minor", sa.BigInteger(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("saldo_minor >= 0", name="ck_user_wallet_saldo_non_negative"),
    )
    op.create_index("ix_user_wallets_user_id", "user_wallets", ["user_id"], unique=True)

    op.create_table(
        "withdrawals",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "profile_id",
            sa.Uuid(),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("amount_minor", sa.BigInteger(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("status", withdrawal_status_enum, nullable=False),
        sa.Column("payout_method", payout_method_enum, nullable=True),
        sa.Column("stripe_payout_id", sa.String(), nullable=True),
        sa.Column("payout_error", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("processed_by", sa.String(), nullable=True),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("amount_minor > 0", name="ck_withdrawal_amount_positive"),
    )
    op.create_index("ix_withdrawals_profile_id", "withdrawals", ["profile_id"])
    op.create_index("ix_withdrawals_user_id", "withdrawals", ["user_id"])
    op.create_index("ix_withdrawals_status", "withdrawals", ["status"])
    op.create_index("ix_withdrawals_stripe_payout_id", "withdrawals", ["stripe_payout_id"])


def downgrade() -> None:
    op.drop_table("withdrawals")
    op.drop_table("user_wallets")
    op.drop_table("tips")
    op.drop_table("profile_invites")
    op.drop_table("profile_members")
    op.drop_table("profiles")

    bind = op.get_bind()
    for enum in (
        payout_method_enum,
        withdrawal_status_enum,
        tip_status_enum,
        invite_status_enum,
        member_role_enum,
        profile_role_enum,
    ):
        enum.drop(bind, checkfirst=True)
