"""
HTTP client for the external notification service.

All transactional email goes through the notification service's template
API. Template rendering lives there; this client only forwards the template
type and data.

Usage:
    from libs.common.emails.client import get_email_client

    email_client = get_email_client()
    await email_client.send_template(
        template_type="order_status_changed",
        to_email="buyer@example.com",
        template_data={"order_number": "MK-20260101-A1B2C", "status": "shipped"},
    )
"""

from typing import Any, Optional

import httpx
from libs.common.config import get_settings
from libs.common.logging import get_logger, get_request_id

logger = get_logger(__name__)


class EmailDeliveryError(Exception):
    """The notification service did not accept an email."""


class EmailClient:
    """
    Async client for the notification service.

    Unlike a fire-and-forget helper, ``send_template`` raises
    ``EmailDeliveryError`` on failure so the background worker that calls it
    can schedule a retry.
    """

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None):
        settings = get_settings()
        self.base_url = base_url or settings.NOTIFICATIONS_SERVICE_URL
        self.api_key = api_key or settings.NOTIFICATIONS_API_KEY
        self.timeout = 15.0

    def _headers(self) -> dict[str, str]:
        headers = {"X-Api-Key": self.api_key}
        request_id = get_request_id()
        if request_id:
            headers["X-Request-ID"] = request_id
        return headers

    async def send_template(
        self,
        template_type: str,
        to_email: str,
        template_data: dict[str, Any],
    ) -> None:
        """
        Send a templated email.

        Template types used by the marketplace:
        - new_order_seller: a buyer placed an order with this seller
        - order_confirmation_buyer: card payment confirmed, order created
        - order_status_changed: seller/admin moved the order to a new status

        Raises:
            EmailDeliveryError: on connection failure or a non-2xx response
        """
        payload = {
            "template_type": template_type,
            "to_email": to_email,
            "template_data": template_data,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/email/template",
                    json=payload,
                    headers=self._headers(),
                )
        except httpx.RequestError as e:
            raise EmailDeliveryError(
                f"Failed to connect to notification service: {e}"
            ) from e

        if not response.is_success:
            raise EmailDeliveryError(
                f"Notification service returned {response.status_code}: {response.text}"
            )

        logger.info("Sent %s email to %s", template_type, to_email)


_email_client: Optional[EmailClient] = None


def get_email_client() -> EmailClient:
    """Get or create the singleton EmailClient instance."""
    global _email_client
    if _email_client is None:
        _email_client = EmailClient()
    return _email_client
