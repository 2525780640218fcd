"""FastAPI dependencies for the external collaborators the order flows use."""

from services.marketplace_service.notifications import TaskQueueNotifier
from services.marketplace_service.stripe_client import StripeClient, get_stripe_client


def get_payment_provider() -> StripeClient:
    return get_stripe_client()


def get_notifier() -> TaskQueueNotifier:
    return TaskQueueNotifier()
