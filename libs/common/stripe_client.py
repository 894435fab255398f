"""
Stripe API client for tip checkout sessions and withdrawal payouts.

Provides async methods for:
- Creating and retrieving Checkout sessions (tips)
- Creating and retrieving payouts (withdrawals)
- Verifying webhook signatures
"""

import asyncio
import hashlib
import hmac
import time
from dataclasses import dataclass, field
from typing import Optional

import httpx
from libs.common.config import get_settings
from libs.common.logging import get_logger

logger = get_logger(__name__)

SIGNATURE_TOLERANCE_SECONDS = 300


@dataclass
class CheckoutSession:
    """Stripe Checkout session as far as tips care about it."""

    id: str
    url: Optional[str]
    status: Optional[str]  # open, complete, expired
    payment_status: Optional[str]  # paid, unpaid, no_payment_required
    amount_total: Optional[int]  # in minor units
    currency: Optional[str]
    metadata: dict = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: dict) -> "CheckoutSession":
        return cls(
            id=data.get("id", ""),
            url=data.get("url"),
            status=data.get("status"),
            payment_status=data.get("payment_status"),
            amount_total=data.get("amount_total"),
            currency=data.get("currency"),
            metadata=data.get("metadata") or {},
        )


@dataclass
class Payout:
    """Stripe payout."""

    id: str
    amount: int  # in minor units
    currency: str
    status: str  # pending, in_transit, paid, failed, canceled
    arrival_date: Optional[int] = None
    failure_code: Optional[str] = None
    failure_message: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict) -> "Payout":
        return cls(
            id=data.get("id", ""),
            amount=data.get("amount", 0),
            currency=data.get("currency", ""),
            status=data.get("status", "pending"),
            arrival_date=data.get("arrival_date"),
            failure_code=data.get("failure_code"),
            failure_message=data.get("failure_message"),
        )


class StripeError(Exception):
    """Base exception for Stripe API errors."""

    def __init__(
        self,
        message: str,
        status_code: int = None,
        response_data: dict = None,
        code: str = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response_data = response_data or {}
        self.code = code
        super().__init__(message)


def _flatten(params: dict, prefix: str = "") -> dict:
    """Stripe form encoding: ``{"metadata": {"a": 1}}`` -> ``{"metadata[a]": 1}``."""
    flat = {}
    for key, value in params.items():
        name = f"{prefix}[{key}]" if prefix else key
        if value is None:
            continue
        if isinstance(value, dict):
            flat.update(_flatten(value, name))
        elif isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                if isinstance(item, dict):
                    flat.update(_flatten(item, f"{name}[{index}]"))
                else:
                    flat[f"{name}[{index}]"] = item
        else:
            flat[name] = value
    return flat


class StripeClient:
    """Async client for the Stripe REST API."""

    def __init__(
        self,
        secret_key: str = None,
        *,
        api_base: str = None,
        timeout: float = None,
        max_retries: int = None,
        retry_backoff: float = None,
        transport: httpx.AsyncBaseTransport = None,
    ):
        settings = get_settings()
        self.secret_key = secret_key if secret_key is not None else settings.STRIPE_SECRET_KEY
        self.api_base = (api_base or settings.STRIPE_API_BASE).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.STRIPE_TIMEOUT
        self.max_retries = (
            max_retries if max_retries is not None else settings.STRIPE_MAX_RETRIES
        )
        self.retry_backoff = (
            retry_backoff if retry_backoff is not None else settings.STRIPE_RETRY_BACKOFF
        )
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.secret_key)

    @property
    def test_mode(self) -> bool:
        return self.secret_key.startswith("sk_test")

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict = None,
        data: dict = None,
        idempotency_key: str = None,
    ) -> dict:
        """Make an async request to the Stripe API.

        Connection failures are retried with exponential backoff. A timeout
        after the request was sent is retried only with an idempotency key,
        since Stripe may already have acted on it. HTTP error responses are
        raised immediately.
        """
        if not self.is_configured:
            raise StripeError("Stripe is not configured")

        url = f"{self.api_base}{endpoint}"
        headers = {"Authorization": f"Bearer {self.secret_key}"}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key

        attempts = self.max_retries + 1
        response = None
        for attempt in range(1, attempts + 1):
            try:
                async with httpx.AsyncClient(
                    timeout=self.timeout, transport=self._transport
                ) as client:
                    response = await client.request(
                        method=method,
                        url=url,
                        headers=headers,
                        params=params,
                        data=_flatten(data) if data else None,
                    )
                break
            except (httpx.ConnectError, httpx.ConnectTimeout) as exc:
                failure = f"Could not connect to Stripe: {exc}"
            except httpx.TimeoutException as exc:
                if not idempotency_key:
                    raise StripeError(f"Stripe request timed out: {exc}") from exc
                failure = f"Stripe request timed out: {exc}"
            except httpx.HTTPError as exc:
                raise StripeError(f"Stripe request failed: {exc}") from exc

            if attempt == attempts:
                raise StripeError(f"{failure} (after {attempts} attempts)")

            delay = self.retry_backoff * (2 ** (attempt - 1))
            logger.warning(
                "Stripe %s %s attempt %d/%d failed, retrying in %.2fs: %s",
                method,
                endpoint,
                attempt,
                attempts,
                delay,
                failure,
            )
            await asyncio.sleep(delay)

        try:
            body = response.json()
        except ValueError:
            body = {}

        if not response.is_success:
            error = body.get("error") or {}
            logger.error(f"Stripe API error: {response.status_code} - {error}")
            raise StripeError(
                message=error.get("message", "Unknown Stripe error"),
                status_code=response.status_code,
                response_data=body,
                code=error.get("code"),
            )

        return body

    # =========================================================================
    # Checkout Methods
    # =========================================================================

    async def create_checkout_session(
        self,
        *,
        amount_minor: int,
        currency: str,
        product_name: str,
        success_url: str,
        cancel_url: str,
        metadata: dict = None,
        idempotency_key: str = None,
    ) -> CheckoutSession:
        """Create a one-line-item payment Checkout session."""
        data = await self._request(
            "POST",
            "/checkout/sessions",
            data={
                "mode": "payment",
                "success_url": success_url,
                "cancel_url": cancel_url,
                "line_items": [
                    {
                        "quantity": 1,
                        "price_data": {
                            "currency": currency.lower(),
                            "unit_amount": amount_minor,
                            "product_data": {"name": product_name},
                        },
                    }
                ],
                "metadata": metadata or {},
            },
            idempotency_key=idempotency_key,
        )
        return CheckoutSession.from_api(data)

    async def retrieve_checkout_session(self, session_id: str) -> CheckoutSession:
        data = await self._request("GET", f"/checkout/sessions/{session_id}")
        return CheckoutSession.from_api(data)

    # =========================================================================
    # Payout Methods
    # =========================================================================

    async def create_payout(
        self,
        *,
        amount_minor: int,
        currency: str,
        description: str,
        idempotency_key: str = None,
    ) -> Payout:
        """
        Pay out from the platform balance to the connected bank account.

        With a test-mode key no request is made; a mock ``po_test_*`` payout
        in transit is returned instead.
        """
        if self.is_configured and self.test_mode:
            logger.info(
                "Test mode: mocking payout of %d %s", amount_minor, currency.upper()
            )
            return Payout(
                id=f"po_test_{int(time.time() * 1000)}",
                amount=amount_minor,
                currency=currency.lower(),
                status="in_transit",
            )

        data = await self._request(
            "POST",
            "/payouts",
            data={
                "amount": amount_minor,
                "currency": currency.lower(),
                "method": "standard",
                "description": description,
                "statement_descriptor": "GoBusker Payout",
            },
            idempotency_key=idempotency_key,
        )
        return Payout.from_api(data)

    async def retrieve_payout(self, payout_id: str) -> Payout:
        if payout_id.startswith("po_test_"):
            return Payout(id=payout_id, amount=0, currency="", status="in_transit")
        data = await self._request("GET", f"/payouts/{payout_id}")
        return Payout.from_api(data)


def verify_webhook_signature(
    payload: bytes,
    signature_header: str,
    secret: str,
    tolerance: int = SIGNATURE_TOLERANCE_SECONDS,
) -> bool:
    """Check a ``Stripe-Signature`` header (``t=...,v1=...``) against the payload."""
    if not signature_header:
        return False

    timestamp = None
    signatures = []
    for part in signature_header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            timestamp = value
        elif key == "v1":
            signatures.append(value)

    if not timestamp or not signatures:
        return False
    try:
        signed_at = int(timestamp)
    except ValueError:
        return False
    if tolerance and abs(time.time() - signed_at) > tolerance:
        return False

    signed_payload = f"{timestamp}.".encode("utf-8") + payload
    expected = hmac.new(
        secret.encode("utf-8"), signed_payload, hashlib.sha256
    ).hexdigest()
    return any(hmac.compare_digest(expected, candidate) for candidate in signatures)


def get_stripe_client() -> StripeClient:
    """FastAPI dependency; overridden in tests."""
    return StripeClient()
