"""ARQ worker for marketplace background tasks.

Run with: arq services.marketplace_service.worker.WorkerSettings
"""

from typing import Any

from arq import Retry
from libs.common.arq_config import get_redis_settings
from libs.common.config import get_settings
from libs.common.emails.client import EmailDeliveryError
from libs.common.logging import configure_logging, get_logger

logger = get_logger(__name__)

settings = get_settings()


# ── Wrapper functions (ARQ requires top-level async callables) ──


async def task_send_order_email(
    ctx: dict, template_type: str, to_email: str, template_data: dict[str, Any]
):
    """Send an order email, backing off between attempts."""
    from services.marketplace_service.tasks import send_order_email

    job_try = ctx.get("job_try", 1)
    try:
        await send_order_email(template_type, to_email, template_data)
    except EmailDeliveryError as e:
        if job_try >= settings.NOTIFICATION_MAX_TRIES:
            logger.error(
                "Giving up on %s email to %s after %d tries: %s",
                template_type,
                to_email,
                job_try,
                e,
            )
            return
        logger.warning(
            "Email %s to %s failed (try %d), retrying: %s",
            template_type,
            to_email,
            job_try,
            e,
        )
        raise Retry(defer=job_try * 15)


async def startup(ctx: dict):
    configure_logging()


# ── Worker configuration ──


class WorkerSettings:
    """ARQ worker settings."""

    redis_settings = get_redis_settings()

    functions = [task_send_order_email]
    on_startup = startup

    max_tries = settings.NOTIFICATION_MAX_TRIES
