"""Background tasks for the marketplace service."""

from typing import Any

from libs.common.emails.client import get_email_client
from libs.common.logging import get_logger

logger = get_logger(__name__)


async def send_order_email(
    template_type: str, to_email: str, template_data: dict[str, Any]
) -> None:
    """Deliver one templated order email; raises EmailDeliveryError on failure."""
    await get_email_client().send_template(
        template_type=template_type,
        to_email=to_email,
        template_data=template_data,
    )
