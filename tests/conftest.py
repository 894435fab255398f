import os
import uuid
from contextlib import contextmanager
from typing import AsyncGenerator, Optional

# Settings are read at import time by libs.db.config; point them at test values first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test-gobusker.db"
os.environ["ENVIRONMENT"] = "local"
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret"
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
os.environ["SMTP_USERNAME"] = ""
os.environ["SMTP_PASSWORD"] = ""

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from libs.common.config import get_settings  # noqa: E402

get_settings.cache_clear()

from libs.auth.dependencies import get_current_user  # noqa: E402
from libs.auth.models import AuthUser  # noqa: E402
from libs.common.stripe_client import (  # noqa: E402
    CheckoutSession,
    Payout,
    StripeError,
    get_stripe_client,
)
from libs.db.base import Base  # noqa: E402
from libs.db.config import configure_sqlite  # noqa: E402
from libs.db.session import get_async_db  # noqa: E402
from services.gateway_service.app.main import app  # noqa: E402

# Import all models so metadata includes every table
from services.invites_service import models as _invite_models  # noqa: E402,F401
from services.profiles_service import models as _profile_models  # noqa: E402,F401
from services.tips_service import models as _tip_models  # noqa: E402,F401
from services.wallet_service import models as _wallet_models  # noqa: E402,F401
from services.withdrawals_service import models as _withdrawal_models  # noqa: E402,F401


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """A fresh SQLite database file per test."""
    engine = configure_sqlite(
        create_async_engine(
            f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
            future=True,
            connect_args={"timeout": 30},
        )
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Factory for extra sessions, e.g. to simulate concurrent requests."""
    return async_sessionmaker(
        bind=test_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


def make_user(
    user_id: Optional[str] = None,
    email: Optional[str] = None,
    role: str = "authenticated",
    name: Optional[str] = None,
) -> AuthUser:
    user_id = user_id or f"user-{uuid.uuid4().hex[:8]}"
    return AuthUser(
        user_id=user_id,
        email=email if email is not None else f"{user_id}@example.com",
        role=role,
        user_metadata={"name": name} if name else {},
    )


def make_admin_user(user_id: str = "admin-1") -> AuthUser:
    return make_user(user_id=user_id, email="admin@gobusker.com", role="service_role")


@contextmanager
def override_auth(user: AuthUser):
    """Run requests inside the block as ``user``."""
    previous = app.dependency_overrides.get(get_current_user)
    app.dependency_overrides[get_current_user] = lambda: user
    try:
        yield user
    finally:
        if previous is None:
            app.dependency_overrides.pop(get_current_user, None)
        else:
            app.dependency_overrides[get_current_user] = previous


# ---------------------------------------------------------------------------
# Stripe
# ---------------------------------------------------------------------------


class FakeStripe:
    """In-memory stand-in for StripeClient."""

    def __init__(self):
        self.payouts: list[tuple[Payout, Optional[str]]] = []
        self.sessions: dict[str, CheckoutSession] = {}
        self.payout_error: Optional[str] = None

    async def create_payout(
        self, *, amount_minor, currency, description, idempotency_key=None
    ) -> Payout:
        if self.payout_error:
            raise StripeError(self.payout_error, status_code=400)
        payout = Payout(
            id=f"po_fake_{len(self.payouts) + 1}",
            amount=amount_minor,
            currency=currency.lower(),
            status="pending",
            arrival_date=1767225600,
        )
        self.payouts.append((payout, idempotency_key))
        return payout

    async def retrieve_payout(self, payout_id: str) -> Payout:
        for payout, _key in self.payouts:
            if payout.id == payout_id:
                return payout
        raise StripeError("No such payout", status_code=404)

    async def create_checkout_session(
        self,
        *,
        amount_minor,
        currency,
        product_name,
        success_url,
        cancel_url,
        metadata=None,
        idempotency_key=None,
    ) -> CheckoutSession:
        session_id = f"cs_test_{len(self.sessions) + 1}"
        session = CheckoutSession(
            id=session_id,
            url=f"https://checkout.stripe.com/c/pay/{session_id}",
            status="open",
            payment_status="unpaid",
            amount_total=amount_minor,
            currency=currency.lower(),
            metadata=dict(metadata or {}),
        )
        self.sessions[session_id] = session
        return session

    async def retrieve_checkout_session(self, session_id: str) -> CheckoutSession:
        if session_id not in self.sessions:
            raise StripeError("No such checkout session", status_code=404)
        return self.sessions[session_id]

    def pay(self, session_id: str, amount_total: Optional[int] = None) -> None:
        session = self.sessions[session_id]
        session.status = "complete"
        session.payment_status = "paid"
        if amount_total is not None:
            session.amount_total = amount_total


@pytest.fixture
def fake_stripe() -> FakeStripe:
    return FakeStripe()


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(db_session, fake_stripe) -> AsyncGenerator[AsyncClient, None]:
    """
    Yield an AsyncClient with the app, sharing the test's DB session and the
    fake Stripe client.
    """
    app.dependency_overrides[get_async_db] = lambda: db_session
    app.dependency_overrides[get_stripe_client] = lambda: fake_stripe

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
