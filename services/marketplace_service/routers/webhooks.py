"""Stripe webhook receiver."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from libs.db.session import get_async_db
from services.marketplace_service.dependencies import get_notifier, get_payment_provider
from services.marketplace_service.services.reconciliation import handle_webhook_event
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["webhooks"])


@router.post("/webhook/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    db: AsyncSession = Depends(get_async_db),
    provider=Depends(get_payment_provider),
    notifier=Depends(get_notifier),
):
    """
    Handle Stripe events.

    Paid checkout sessions are reconciled into orders; every other event is
    acknowledged so Stripe stops retrying it.
    """
    payload = await request.body()
    await handle_webhook_event(db, payload, stripe_signature, provider, notifier)
    return {"received": True}
