"""Unit tests for the Stripe client, driven through httpx.MockTransport."""

import hashlib
import hmac
import time
from urllib.parse import parse_qs

import httpx
import pytest
from libs.common.stripe_client import (
    StripeClient,
    StripeError,
    _flatten,
    verify_webhook_signature,
)


def _client(handler, secret_key="sk_live_abc", **kwargs) -> StripeClient:
    kwargs.setdefault("retry_backoff", 0)
    kwargs.setdefault("max_retries", 2)
    return StripeClient(
        secret_key,
        api_base="https://stripe.test/v1",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def _sign(payload: bytes, secret: str, timestamp: int) -> str:
    digest = hmac.new(
        secret.encode(), f"{timestamp}.".encode() + payload, hashlib.sha256
    ).hexdigest()
    return f"t={timestamp},v1={digest}"


@pytest.mark.unit
def test_flatten_nested_params():
    flat = _flatten(
        {
            "mode": "payment",
            "skip": None,
            "metadata": {"tipId": "t1"},
            "line_items": [{"quantity": 1, "price_data": {"unit_amount": 500}}],
        }
    )

    assert flat == {
        "mode": "payment",
        "metadata[tipId]": "t1",
        "line_items[0][quantity]": 1,
        "line_items[0][price_data][unit_amount]": 500,
    }


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_checkout_session_sends_form_and_idempotency_key():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "id": "cs_123",
                "url": "https://checkout.stripe.com/c/pay/cs_123",
                "status": "open",
                "payment_status": "unpaid",
                "amount_total": 2500,
                "currency": "sek",
                "metadata": {"tipId": "t1"},
            },
        )

    stripe = _client(handler)
    session = await stripe.create_checkout_session(
        amount_minor=2500,
        currency="SEK",
        product_name="Tip for Hornfolk",
        success_url="https://app/success",
        cancel_url="https://app/cancel",
        metadata={"tipId": "t1"},
        idempotency_key="tip-checkout-t1",
    )

    assert session.id == "cs_123"
    assert session.amount_total == 2500
    assert session.metadata == {"tipId": "t1"}

    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/v1/checkout/sessions"
    assert request.headers["Authorization"] == "Bearer sk_live_abc"
    assert request.headers["Idempotency-Key"] == "tip-checkout-t1"
    form = parse_qs(request.content.decode())
    assert form["line_items[0][price_data][currency]"] == ["sek"]
    assert form["line_items[0][price_data][unit_amount]"] == ["2500"]
    assert form["metadata[tipId]"] == ["t1"]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_connect_errors_are_retried():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) < 3:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json={"id": "po_1", "amount": 100, "status": "paid"})

    payout = await _client(handler).retrieve_payout("po_1")

    assert payout.status == "paid"
    assert len(calls) == 3


@pytest.mark.asyncio
@pytest.mark.unit
async def test_connect_errors_give_up_after_max_retries():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(StripeError) as exc_info:
        await _client(handler, max_retries=1).retrieve_payout("po_1")

    assert len(calls) == 2
    assert "after 2 attempts" in exc_info.value.message


@pytest.mark.asyncio
@pytest.mark.unit
async def test_read_timeout_without_idempotency_key_is_not_retried():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(StripeError):
        await _client(handler).retrieve_checkout_session("cs_1")

    assert len(calls) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_read_timeout_with_idempotency_key_is_retried():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            raise httpx.ReadTimeout("timed out", request=request)
        return httpx.Response(200, json={"id": "po_2", "amount": 100, "status": "pending"})

    payout = await _client(handler).create_payout(
        amount_minor=100,
        currency="SEK",
        description="GoBusker withdrawal",
        idempotency_key="withdrawal-1",
    )

    assert payout.id == "po_2"
    assert len(calls) == 2
    assert {c.headers["Idempotency-Key"] for c in calls} == {"withdrawal-1"}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_error_response_raises_without_retry():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(
            400,
            json={"error": {"message": "Insufficient funds", "code": "balance_insufficient"}},
        )

    with pytest.raises(StripeError) as exc_info:
        await _client(handler).create_payout(
            amount_minor=100, currency="SEK", description="x", idempotency_key="k"
        )

    assert len(calls) == 1
    assert exc_info.value.status_code == 400
    assert exc_info.value.message == "Insufficient funds"
    assert exc_info.value.code == "balance_insufficient"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_test_mode_mocks_payouts():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected in test mode")

    stripe = _client(handler, secret_key="sk_test_abc")

    payout = await stripe.create_payout(amount_minor=1000, currency="SEK", description="x")
    assert payout.id.startswith("po_test_")
    assert payout.status == "in_transit"
    assert payout.currency == "sek"

    retrieved = await stripe.retrieve_payout(payout.id)
    assert retrieved.status == "in_transit"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unconfigured_client_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected without a key")

    stripe = _client(handler, secret_key="")

    assert stripe.is_configured is False
    with pytest.raises(StripeError) as exc_info:
        await stripe.retrieve_checkout_session("cs_1")
    assert exc_info.value.message == "Stripe is not configured"


@pytest.mark.unit
def test_webhook_signature():
    payload = b'{"type": "checkout.session.completed"}'
    now = int(time.time())

    assert verify_webhook_signature(payload, _sign(payload, "whsec_1", now), "whsec_1")
    assert not verify_webhook_signature(payload, _sign(payload, "other", now), "whsec_1")
    assert not verify_webhook_signature(
        payload + b" ", _sign(payload, "whsec_1", now), "whsec_1"
    )
    assert not verify_webhook_signature(
        payload, _sign(payload, "whsec_1", now - 3600), "whsec_1"
    )
    assert not verify_webhook_signature(payload, "", "whsec_1")
    assert not verify_webhook_signature(payload, "t=abc,v1=def", "whsec_1")
