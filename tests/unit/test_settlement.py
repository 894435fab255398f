"""Unit tests for withdrawal settlement."""

import uuid

import pytest
from libs.common.errors import (
    BankAccountRequired,
    Conflict,
    ExternalServiceError,
    Forbidden,
    InsufficientFunds,
    NotFound,
    ValidationError,
)
from services.wallet_service.services import wallet_ops
from services.withdrawals_service.models import PayoutMethod, WithdrawalStatus
from services.withdrawals_service.services import settlement
from tests.conftest import make_admin_user, make_user
from tests.factories import (
    UserWalletFactory,
    WithdrawalFactory,
    create_profile_with_roster,
)


async def _funded_profile(db, saldo_minor=5000, bank_account_token="btok_123"):
    profile, members = await create_profile_with_roster(
        db, [100], bank_account_token=bank_account_token
    )
    db.add(UserWalletFactory.create(user_id=profile.user_id, saldo_minor=saldo_minor))
    await db.commit()
    return profile, make_user(user_id=profile.user_id, email=members[0].email)


async def _pending(db, profile, amount_minor=1000, **overrides):
    withdrawal = WithdrawalFactory.create(
        profile_id=profile.id,
        user_id=profile.user_id,
        amount_minor=amount_minor,
        **overrides,
    )
    db.add(withdrawal)
    await db.commit()
    return withdrawal


# ---------------------------------------------------------------------------
# request_withdrawal
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_request_withdrawal_creates_pending_without_debit(db_session):
    profile, owner = await _funded_profile(db_session)

    withdrawal = await settlement.request_withdrawal(
        db_session, user=owner, profile_id=profile.id, amount=20, notes="Rent"
    )

    assert withdrawal.status == WithdrawalStatus.PENDING
    assert withdrawal.amount_minor == 2000
    assert withdrawal.currency == "SEK"
    assert withdrawal.notes == "Rent"
    assert await wallet_ops.get_balance(db_session, owner.user_id) == 5000


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.parametrize("amount", [0, -5, float("nan"), float("inf")])
async def test_request_withdrawal_rejects_non_positive_amount(db_session, amount):
    profile, owner = await _funded_profile(db_session)

    with pytest.raises(ValidationError):
        await settlement.request_withdrawal(
            db_session, user=owner, profile_id=profile.id, amount=amount
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_request_withdrawal_owner_only(db_session):
    profile, _ = await _funded_profile(db_session)

    with pytest.raises(Forbidden):
        await settlement.request_withdrawal(
            db_session, user=make_user(), profile_id=profile.id, amount=10
        )
    with pytest.raises(NotFound):
        await settlement.request_withdrawal(
            db_session, user=make_user(), profile_id=uuid.uuid4(), amount=10
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_request_withdrawal_needs_bank_account(db_session):
    profile, owner = await _funded_profile(db_session, bank_account_token=None)

    with pytest.raises(BankAccountRequired) as exc_info:
        await settlement.request_withdrawal(
            db_session, user=owner, profile_id=profile.id, amount=10
        )
    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
@pytest.mark.unit
async def test_request_withdrawal_checks_balance(db_session):
    profile, owner = await _funded_profile(db_session, saldo_minor=1500)

    with pytest.raises(InsufficientFunds) as exc_info:
        await settlement.request_withdrawal(
            db_session, user=owner, profile_id=profile.id, amount=15.01
        )
    assert exc_info.value.detail == "Insufficient saldo. Available: 15.00 SEK"


# ---------------------------------------------------------------------------
# approve_withdrawal
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_approve_debits_wallet_and_creates_payout(db_session, fake_stripe):
    profile, owner = await _funded_profile(db_session, saldo_minor=5000)
    withdrawal = await _pending(db_session, profile, amount_minor=2000)
    admin = make_admin_user()

    result = await settlement.approve_withdrawal(
        db_session, withdrawal_id=withdrawal.id, admin=admin, payout_client=fake_stripe
    )

    assert result.new_balance_minor == 3000
    assert result.payout.success is True
    assert result.payout.payout_id == "po_fake_1"
    assert await wallet_ops.get_balance(db_session, owner.user_id) == 3000

    payout, idempotency_key = fake_stripe.payouts[0]
    assert payout.amount == 2000
    assert idempotency_key == f"withdrawal-{withdrawal.id}"

    stored = await settlement.get_withdrawal(db_session, withdrawal.id)
    assert stored.status == WithdrawalStatus.APPROVED
    assert stored.processed_by == admin.user_id
    assert stored.processed_at is not None
    assert stored.payout_method == PayoutMethod.STRIPE
    assert stored.stripe_payout_id == "po_fake_1"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_approve_keeps_approval_when_payout_fails(db_session, fake_stripe):
    profile, owner = await _funded_profile(db_session, saldo_minor=5000)
    withdrawal = await _pending(db_session, profile, amount_minor=1000)
    fake_stripe.payout_error = "Insufficient funds in Stripe account"

    result = await settlement.approve_withdrawal(
        db_session,
        withdrawal_id=withdrawal.id,
        admin=make_admin_user(),
        payout_client=fake_stripe,
    )

    assert result.payout.success is False
    assert result.payout.error == "Manual payout required: Insufficient funds in Stripe account"
    assert await wallet_ops.get_balance(db_session, owner.user_id) == 4000

    stored = await settlement.get_withdrawal(db_session, withdrawal.id)
    assert stored.status == WithdrawalStatus.APPROVED
    assert stored.payout_method == PayoutMethod.MANUAL
    assert stored.payout_error == "Insufficient funds in Stripe account"
    assert stored.stripe_payout_id is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_approve_with_insufficient_saldo_stays_pending(db_session, fake_stripe):
    profile, owner = await _funded_profile(db_session, saldo_minor=500)
    withdrawal = await _pending(db_session, profile, amount_minor=1000)

    with pytest.raises(InsufficientFunds):
        await settlement.approve_withdrawal(
            db_session,
            withdrawal_id=withdrawal.id,
            admin=make_admin_user(),
            payout_client=fake_stripe,
        )

    stored = await settlement.get_withdrawal(db_session, withdrawal.id)
    assert stored.status == WithdrawalStatus.PENDING
    assert await wallet_ops.get_balance(db_session, owner.user_id) == 500
    assert fake_stripe.payouts == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_approve_twice_conflicts_and_debits_once(db_session, fake_stripe):
    profile, owner = await _funded_profile(db_session, saldo_minor=5000)
    withdrawal = await _pending(db_session, profile, amount_minor=1000)
    admin = make_admin_user()

    await settlement.approve_withdrawal(
        db_session, withdrawal_id=withdrawal.id, admin=admin, payout_client=fake_stripe
    )
    with pytest.raises(Conflict):
        await settlement.approve_withdrawal(
            db_session, withdrawal_id=withdrawal.id, admin=admin, payout_client=fake_stripe
        )

    assert await wallet_ops.get_balance(db_session, owner.user_id) == 4000
    assert len(fake_stripe.payouts) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_approve_unknown_withdrawal(db_session, fake_stripe):
    with pytest.raises(NotFound):
        await settlement.approve_withdrawal(
            db_session,
            withdrawal_id=uuid.uuid4(),
            admin=make_admin_user(),
            payout_client=fake_stripe,
        )


# ---------------------------------------------------------------------------
# reject / complete
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reject_leaves_wallet_alone(db_session):
    profile, owner = await _funded_profile(db_session, saldo_minor=5000)
    withdrawal = await _pending(db_session, profile)

    rejected = await settlement.reject_withdrawal(
        db_session, withdrawal_id=withdrawal.id, admin=make_admin_user(), notes="Wrong IBAN"
    )

    assert rejected.status == WithdrawalStatus.REJECTED
    assert rejected.notes == "Wrong IBAN"
    assert await wallet_ops.get_balance(db_session, owner.user_id) == 5000

    with pytest.raises(Conflict):
        await settlement.reject_withdrawal(
            db_session, withdrawal_id=withdrawal.id, admin=make_admin_user()
        )
    with pytest.raises(Conflict):
        await settlement.mark_completed(
            db_session, withdrawal_id=withdrawal.id, admin=make_admin_user()
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_mark_completed_requires_approval(db_session, fake_stripe):
    profile, _ = await _funded_profile(db_session)
    withdrawal = await _pending(db_session, profile)
    admin = make_admin_user()

    with pytest.raises(Conflict):
        await settlement.mark_completed(db_session, withdrawal_id=withdrawal.id, admin=admin)

    await settlement.approve_withdrawal(
        db_session, withdrawal_id=withdrawal.id, admin=admin, payout_client=fake_stripe
    )
    completed = await settlement.mark_completed(
        db_session, withdrawal_id=withdrawal.id, admin=admin
    )

    assert completed.status == WithdrawalStatus.COMPLETED
    with pytest.raises(Conflict):
        await settlement.reject_withdrawal(
            db_session, withdrawal_id=withdrawal.id, admin=admin
        )


# ---------------------------------------------------------------------------
# Payout reconciliation
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_payout_status(db_session, fake_stripe):
    profile, _ = await _funded_profile(db_session)
    withdrawal = await _pending(db_session, profile, amount_minor=1250)

    status = await settlement.get_payout_status(
        db_session, withdrawal_id=withdrawal.id, payout_client=fake_stripe
    )
    assert status["status"] == "no_payout"

    await settlement.approve_withdrawal(
        db_session,
        withdrawal_id=withdrawal.id,
        admin=make_admin_user(),
        payout_client=fake_stripe,
    )
    status = await settlement.get_payout_status(
        db_session, withdrawal_id=withdrawal.id, payout_client=fake_stripe
    )

    assert status["status"] == "pending"
    assert status["payout_id"] == "po_fake_1"
    assert status["amount"] == 12.5
    assert status["payout_method"] == PayoutMethod.STRIPE


@pytest.mark.asyncio
@pytest.mark.unit
async def test_payout_status_upstream_error(db_session, fake_stripe):
    profile, _ = await _funded_profile(db_session)
    withdrawal = await _pending(
        db_session,
        profile,
        status=WithdrawalStatus.APPROVED,
        stripe_payout_id="po_missing",
    )

    with pytest.raises(ExternalServiceError):
        await settlement.get_payout_status(
            db_session, withdrawal_id=withdrawal.id, payout_client=fake_stripe
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_bulk_process_retries_manual_withdrawals(db_session, fake_stripe):
    profile, _ = await _funded_profile(db_session)
    manual = await _pending(
        db_session,
        profile,
        status=WithdrawalStatus.APPROVED,
        payout_method=PayoutMethod.MANUAL,
        payout_error="Stripe was down",
    )
    await _pending(
        db_session,
        profile,
        status=WithdrawalStatus.APPROVED,
        payout_method=PayoutMethod.STRIPE,
        stripe_payout_id="po_existing",
    )
    await _pending(db_session, profile)

    results = await settlement.bulk_process(db_session, payout_client=fake_stripe)

    assert results == [
        {
            "withdrawal_id": manual.id,
            "success": True,
            "payout_id": "po_fake_1",
            "error": None,
        }
    ]
    stored = await settlement.get_withdrawal(db_session, manual.id)
    assert stored.payout_method == PayoutMethod.STRIPE
    assert stored.payout_error is None

    assert await settlement.bulk_process(db_session, payout_client=fake_stripe) == []


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_list_profile_withdrawals_members_and_admins(db_session):
    profile, owner = await _funded_profile(db_session)
    withdrawal = await _pending(db_session, profile)

    as_owner = await settlement.list_profile_withdrawals(
        db_session, profile_id=profile.id, user=owner
    )
    as_admin = await settlement.list_profile_withdrawals(
        db_session, profile_id=profile.id, user=make_admin_user()
    )
    assert [w.id for w in as_owner] == [withdrawal.id]
    assert [w.id for w in as_admin] == [withdrawal.id]

    with pytest.raises(Forbidden):
        await settlement.list_profile_withdrawals(
            db_session, profile_id=profile.id, user=make_user()
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_list_all_withdrawals_filters_by_status(db_session):
    profile, _ = await _funded_profile(db_session)
    pending = await _pending(db_session, profile)
    await _pending(db_session, profile, status=WithdrawalStatus.REJECTED)

    everything = await settlement.list_all_withdrawals(db_session)
    only_pending = await settlement.list_all_withdrawals(
        db_session, status=WithdrawalStatus.PENDING
    )

    assert len(everything) == 2
    assert [(w.id, name) for w, name in only_pending] == [(pending.id, profile.name)]
