"""Integration tests for card checkout: session, confirmation and webhooks."""

import json
from decimal import Decimal

import pytest
from libs.auth.models import Role
from services.marketplace_service.models import Order
from sqlalchemy import func, select
from tests.fakes import auth_headers, sign_webhook, webhook_payload


def _checkout_body(*lines):
    return {
        "orderItems": [
            {"productId": str(product.id), "variantId": str(variant.id), "quantity": qty}
            for product, variant, qty in lines
        ],
        "paymentMethod": "card",
        "shippingAddress": {
            "street": "12 Marina Road",
            "city": "Lagos",
            "state": "Lagos",
            "country": "Nigeria",
        },
    }


async def _order_count(db) -> int:
    return await db.scalar(select(func.count()).select_from(Order))


async def _open_session(client, catalog, *lines) -> str:
    response = await client.post(
        "/order/checkout-session",
        json=_checkout_body(*lines),
        headers=auth_headers(catalog.buyer.id, Role.BUYER),
    )
    assert response.status_code == 201, response.text
    return response.json()["session_id"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_checkout_session_opens_without_writing(client, db_session, catalog, stripe):
    response = await client.post(
        "/order/checkout-session",
        json=_checkout_body((catalog.shirt, catalog.shirt_sale, 2)),
        headers=auth_headers(catalog.buyer.id, Role.BUYER),
    )

    assert response.status_code == 201, response.text
    data = response.json()
    assert data["session_id"] == "cs_test_1"
    assert data["url"].startswith("https://checkout.stripe.com/")
    assert stripe.sessions["cs_test_1"].amount_total == 3000
    assert await _order_count(db_session) == 0
    await db_session.refresh(catalog.shirt_sale)
    assert catalog.shirt_sale.stock == 4


@pytest.mark.asyncio
@pytest.mark.integration
async def test_checkout_session_validates_order(client, catalog, stripe):
    response = await client.post(
        "/order/checkout-session",
        json=_checkout_body((catalog.cap, catalog.cap_v, 1), (catalog.mug, catalog.mug_v, 1)),
        headers=auth_headers(catalog.buyer.id, Role.BUYER),
    )

    assert response.status_code == 400
    assert stripe.created_requests == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_confirm_creates_order_once(client, db_session, catalog, stripe, notifier):
    session_id = await _open_session(client, catalog, (catalog.shirt, catalog.shirt_a, 3))
    stripe.mark_paid(session_id, payment_intent_id="pi_123")
    headers = auth_headers(catalog.buyer.id, Role.BUYER)

    first = await client.get("/order/confirm", params={"session_id": session_id}, headers=headers)
    second = await client.get("/order/confirm", params={"session_id": session_id}, headers=headers)

    assert first.status_code == 200, first.text
    assert first.json()["message"] == "Order created successfully"
    order = first.json()["order"]
    assert order["payment_method"] == "card"
    assert order["payment_details"]["transaction_id"] == "pi_123"
    assert order["payment_details"]["payment_gateway"] == "stripe"
    assert Decimal(order["total_amount"]) == Decimal("30.00")

    assert second.status_code == 200
    assert second.json()["message"] == "Order already confirmed"
    assert second.json()["order"]["id"] == order["id"]

    assert await _order_count(db_session) == 1
    await db_session.refresh(catalog.shirt_a)
    assert catalog.shirt_a.stock == 7
    assert sorted(notifier.templates()) == ["new_order_seller", "order_confirmation_buyer"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_confirm_unpaid_session(client, db_session, catalog):
    session_id = await _open_session(client, catalog, (catalog.cap, catalog.cap_v, 1))

    response = await client.get(
        "/order/confirm",
        params={"session_id": session_id},
        headers=auth_headers(catalog.buyer.id, Role.BUYER),
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Payment has not been completed"
    assert await _order_count(db_session) == 0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_confirm_requires_session_id(client, catalog):
    response = await client.get(
        "/order/confirm", headers=auth_headers(catalog.buyer.id, Role.BUYER)
    )

    assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.integration
async def test_confirm_by_other_buyer_forbidden(client, db_session, catalog, stripe):
    session_id = await _open_session(client, catalog, (catalog.cap, catalog.cap_v, 1))
    stripe.mark_paid(session_id)

    response = await client.get(
        "/order/confirm",
        params={"session_id": session_id},
        headers=auth_headers(catalog.other_buyer.id, Role.BUYER),
    )

    assert response.status_code == 403
    assert await _order_count(db_session) == 0


# ---------------------------------------------------------------------------
# Webhook
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_webhook_rejects_bad_signature(client, db_session, catalog, stripe):
    session_id = await _open_session(client, catalog, (catalog.cap, catalog.cap_v, 1))
    stripe.mark_paid(session_id)
    payload = webhook_payload("checkout.session.completed", session_id)

    response = await client.post(
        "/order/webhook/stripe",
        content=payload,
        headers={"Stripe-Signature": sign_webhook(payload, secret="whsec_wrong")},
    )

    assert response.status_code == 401
    assert await _order_count(db_session) == 0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_webhook_without_session_object_is_bad_request(client, db_session, stripe):
    payload = json.dumps(
        {"type": "checkout.session.completed", "data": {"object": "cs_test_1"}}
    ).encode()

    response = await client.post(
        "/order/webhook/stripe",
        content=payload,
        headers={"Stripe-Signature": sign_webhook(payload)},
    )

    assert response.status_code == 400
    assert stripe.retrieve_calls == 0
    assert await _order_count(db_session) == 0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_webhook_then_redirect_create_one_order(client, db_session, catalog, stripe):
    session_id = await _open_session(client, catalog, (catalog.cap, catalog.cap_v, 2))
    stripe.mark_paid(session_id)
    payload = webhook_payload("checkout.session.completed", session_id)

    response = await client.post(
        "/order/webhook/stripe",
        content=payload,
        headers={"Stripe-Signature": sign_webhook(payload)},
    )
    confirm = await client.get(
        "/order/confirm",
        params={"session_id": session_id},
        headers=auth_headers(catalog.buyer.id, Role.BUYER),
    )

    assert response.status_code == 200
    assert response.json() == {"received": True}
    assert confirm.json()["message"] == "Order already confirmed"
    assert await _order_count(db_session) == 1
    await db_session.refresh(catalog.cap_v)
    assert catalog.cap_v.stock == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_webhook_acknowledges_other_events(client, db_session):
    payload = webhook_payload("customer.created", "cus_123")

    response = await client.post(
        "/order/webhook/stripe",
        content=payload,
        headers={"Stripe-Signature": sign_webhook(payload)},
    )

    assert response.status_code == 200
    assert await _order_count(db_session) == 0
