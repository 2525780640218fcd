"""Unit tests for the Stripe client: request encoding, parsing and signatures."""

import time
from unittest.mock import AsyncMock, patch

import pytest
from services.marketplace_service.stripe_client import (
    CheckoutLineItem,
    CheckoutSession,
    StripeClient,
    _form_encode,
)
from tests.fakes import sign_webhook

SECRET = "whsec_unit"


def _client() -> StripeClient:
    return StripeClient(secret_key="sk_test_unit", webhook_secret=SECRET)


@pytest.mark.unit
def test_form_encode_flattens_nested_values():
    form = {}
    _form_encode(
        "line_items",
        [{"quantity": 2, "price_data": {"unit_amount": 1000, "product_data": {"name": "Tee"}}}],
        form,
    )
    _form_encode("customer_email", None, form)

    assert form == {
        "line_items[0][quantity]": "2",
        "line_items[0][price_data][unit_amount]": "1000",
        "line_items[0][price_data][product_data][name]": "Tee",
    }


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_checkout_session_posts_form():
    client = _client()
    with patch.object(
        StripeClient,
        "_request",
        new_callable=AsyncMock,
        return_value={
            "id": "cs_test_1",
            "url": "https://checkout.stripe.com/c/pay/cs_test_1",
            "status": "open",
            "payment_status": "unpaid",
            "metadata": {"order_intent_parts": "1"},
        },
    ) as mock_request:
        session = await client.create_checkout_session(
            line_items=[CheckoutLineItem(name="Tee", unit_amount=1500, quantity=2)],
            currency="usd",
            success_url="https://shop.test/success?session_id={CHECKOUT_SESSION_ID}",
            cancel_url="https://shop.test/cancel",
            client_reference_id="buyer-1",
            metadata={"order_intent_parts": "1"},
        )

    method, endpoint = mock_request.call_args.args
    form = mock_request.call_args.kwargs["form"]
    assert (method, endpoint) == ("POST", "/v1/checkout/sessions")
    assert form["mode"] == "payment"
    assert form["line_items[0][price_data][unit_amount]"] == "1500"
    assert form["metadata[order_intent_parts]"] == "1"
    assert "customer_email" not in form
    assert session.id == "cs_test_1"
    assert session.is_paid is False


@pytest.mark.asyncio
@pytest.mark.unit
async def test_retrieve_expands_payment_intent():
    client = _client()
    with patch.object(
        StripeClient,
        "_request",
        new_callable=AsyncMock,
        return_value={
            "id": "cs_test_1",
            "payment_status": "paid",
            "payment_intent": {"id": "pi_1", "status": "succeeded"},
        },
    ) as mock_request:
        session = await client.retrieve_checkout_session("cs_test_1")

    assert mock_request.call_args.kwargs["params"] == {"expand[]": "payment_intent"}
    assert session.payment_intent_id == "pi_1"
    assert session.is_paid is True


@pytest.mark.unit
def test_paid_session_with_unsettled_intent_is_not_paid():
    session = CheckoutSession.from_api(
        {
            "id": "cs_test_1",
            "payment_status": "paid",
            "payment_intent": {"id": "pi_1", "status": "requires_action"},
        }
    )
    assert session.is_paid is False


@pytest.mark.unit
def test_valid_signature_accepted():
    payload = b'{"type": "checkout.session.completed"}'
    assert _client().verify_webhook_signature(payload, sign_webhook(payload, secret=SECRET))


@pytest.mark.unit
def test_tampered_payload_rejected():
    header = sign_webhook(b'{"amount": 1}', secret=SECRET)
    assert not _client().verify_webhook_signature(b'{"amount": 1000}', header)


@pytest.mark.unit
def test_stale_signature_rejected():
    payload = b"{}"
    header = sign_webhook(payload, secret=SECRET, timestamp=int(time.time()) - 3600)
    assert not _client().verify_webhook_signature(payload, header)


@pytest.mark.unit
def test_missing_or_garbled_header_rejected():
    client = _client()
    assert not client.verify_webhook_signature(b"{}", None)
    assert not client.verify_webhook_signature(b"{}", "garbage")
    assert not client.verify_webhook_signature(b"{}", "t=abc,v1=deadbeef")
