"""
Stripe API client for hosted checkout.

Provides async methods for:
- Creating Checkout Sessions
- Retrieving a session with its PaymentIntent expanded
- Verifying webhook signatures
"""

import hashlib
import hmac
import time
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
from libs.common.config import get_settings
from libs.common.logging import get_logger

logger = get_logger(__name__)

settings = get_settings()

WEBHOOK_TOLERANCE_SECONDS = 300


@dataclass
class CheckoutLineItem:
    """One line on the hosted payment page."""

    name: str
    unit_amount: int  # smallest currency unit (cents)
    quantity: int
    description: Optional[str] = None


@dataclass
class CheckoutSession:
    """The parts of a Stripe Checkout Session the marketplace relies on."""

    id: str
    url: Optional[str]
    status: Optional[str]  # open, complete, expired
    payment_status: Optional[str]  # paid, unpaid, no_payment_required
    client_reference_id: Optional[str] = None
    amount_total: Optional[int] = None
    currency: Optional[str] = None
    metadata: dict[str, str] = field(default_factory=dict)
    payment_intent_id: Optional[str] = None
    payment_intent_status: Optional[str] = None

    @property
    def is_paid(self) -> bool:
        if self.payment_status != "paid":
            return False
        # When expanded, the PaymentIntent must agree
        return self.payment_intent_status in (None, "succeeded")

    @classmethod
    def from_api(cls, data: dict) -> "CheckoutSession":
        payment_intent = data.get("payment_intent")
        if isinstance(payment_intent, dict):
            payment_intent_id = payment_intent.get("id")
            payment_intent_status = payment_intent.get("status")
        else:
            payment_intent_id = payment_intent
            payment_intent_status = None

        return cls(
            id=data["id"],
            url=data.get("url"),
            status=data.get("status"),
            payment_status=data.get("payment_status"),
            client_reference_id=data.get("client_reference_id"),
            amount_total=data.get("amount_total"),
            currency=data.get("currency"),
            metadata=dict(data.get("metadata") or {}),
            payment_intent_id=payment_intent_id,
            payment_intent_status=payment_intent_status,
        )


class StripeError(Exception):
    """Base exception for Stripe API errors."""

    def __init__(
        self, message: str, status_code: Optional[int] = None, response_data: Optional[dict] = None
    ):
        self.message = message
        self.status_code = status_code
        self.response_data = response_data or {}
        super().__init__(message)


def _form_encode(prefix: str, value: Any, out: dict[str, str]) -> None:
    """Flatten nested dicts/lists into Stripe's bracketed form keys."""
    if isinstance(value, dict):
        for key, inner in value.items():
            _form_encode(f"{prefix}[{key}]", inner, out)
    elif isinstance(value, (list, tuple)):
        for index, inner in enumerate(value):
            _form_encode(f"{prefix}[{index}]", inner, out)
    elif value is not None:
        out[prefix] = str(value)


class StripeClient:
    """Async client for the Stripe Checkout API."""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        base_url: Optional[str] = None,
    ):
        self.secret_key = secret_key or settings.STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret or settings.STRIPE_WEBHOOK_SECRET
        self.base_url = base_url or settings.STRIPE_API_BASE

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict] = None,
        form: Optional[dict] = None,
    ) -> dict:
        """Make an async request to the Stripe API."""
        if not self.secret_key:
            raise StripeError("STRIPE_SECRET_KEY is not configured")

        url = f"{self.base_url}{endpoint}"
        async with httpx.AsyncClient(timeout=30.0) as client:
            try:
                response = await client.request(
                    method=method,
                    url=url,
                    headers={"Authorization": f"Bearer {self.secret_key}"},
                    params=params,
                    data=form,
                )
            except httpx.RequestError as e:
                raise StripeError(f"Could not reach Stripe: {e}") from e

        data = response.json()
        if not response.is_success:
            error = data.get("error") or {}
            logger.error("Stripe API error: %s - %s", response.status_code, error)
            raise StripeError(
                message=error.get("message", "Unknown Stripe error"),
                status_code=response.status_code,
                response_data=data,
            )
        return data

    # =========================================================================
    # Checkout Sessions
    # =========================================================================

    async def create_checkout_session(
        self,
        *,
        line_items: list[CheckoutLineItem],
        currency: str,
        success_url: str,
        cancel_url: str,
        client_reference_id: Optional[str] = None,
        metadata: Optional[dict[str, str]] = None,
        customer_email: Optional[str] = None,
    ) -> CheckoutSession:
        """
        Open a hosted payment-mode Checkout Session.

        Args:
            line_items: Items shown on the payment page
            currency: ISO currency code (lowercase)
            success_url: Redirect after payment; may contain {CHECKOUT_SESSION_ID}
            cancel_url: Redirect when the buyer abandons checkout
            client_reference_id: Our buyer id, echoed back on the session
            metadata: Opaque key/value pairs (values up to 500 chars)

        Returns:
            CheckoutSession with id and hosted url
        """
        payload: dict[str, Any] = {
            "mode": "payment",
            "success_url": success_url,
            "cancel_url": cancel_url,
            "client_reference_id": client_reference_id,
            "customer_email": customer_email,
            "metadata": metadata or {},
            "line_items": [
                {
                    "quantity": item.quantity,
                    "price_data": {
                        "currency": currency,
                        "unit_amount": item.unit_amount,
                        "product_data": {
                            "name": item.name,
                            "description": item.description,
                        },
                    },
                }
                for item in line_items
            ],
        }
        form: dict[str, str] = {}
        for key, value in payload.items():
            _form_encode(key, value, form)

        data = await self._request("POST", "/v1/checkout/sessions", form=form)
        return CheckoutSession.from_api(data)

    async def retrieve_checkout_session(self, session_id: str) -> CheckoutSession:
        """Fetch a session with its PaymentIntent expanded."""
        data = await self._request(
            "GET",
            f"/v1/checkout/sessions/{session_id}",
            params={"expand[]": "payment_intent"},
        )
        return CheckoutSession.from_api(data)

    # =========================================================================
    # Webhooks
    # =========================================================================

    def verify_webhook_signature(
        self,
        payload: bytes,
        signature_header: Optional[str],
        tolerance: int = WEBHOOK_TOLERANCE_SECONDS,
    ) -> bool:
        """
        Check a ``Stripe-Signature`` header (``t=<ts>,v1=<hex>[,v1=...]``).

        The signed content is ``"{t}.{payload}"`` under HMAC-SHA256 with the
        endpoint's webhook secret.
        """
        if not self.webhook_secret or not signature_header:
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
            if abs(time.time() - int(timestamp)) > tolerance:
                return False
        except ValueError:
            return False

        signed_payload = f"{timestamp}.".encode("utf-8") + payload
        expected = hmac.new(
            self.webhook_secret.encode("utf-8"), signed_payload, hashlib.sha256
        ).hexdigest()
        return any(hmac.compare_digest(expected, candidate) for candidate in signatures)


def get_stripe_client() -> StripeClient:
    """Get a StripeClient instance."""
    return StripeClient()
