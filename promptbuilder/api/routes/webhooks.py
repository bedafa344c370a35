"""
Prompt Builder Backend — Stripe Webhook
Verifies the Stripe signature and hands the event to the subscription reconciler.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from promptbuilder.core.config import settings
from promptbuilder.core.database import get_db
from promptbuilder.services import billing
from promptbuilder.services.subscriptions import reconcile_event

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/webhooks/stripe", include_in_schema=False)
async def stripe_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    """Handle Stripe webhook events (works for both test and live modes)."""
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    if not sig_header:
        logger.error("[Webhook] Missing Stripe signature")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing Stripe signature.")
    if not settings.active_stripe_webhook_secret:
        logger.error(f"[Webhook] Webhook secret not configured ({settings.STRIPE_MODE} mode)")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Webhook secret not configured.")

    try:
        event = billing.construct_event(payload, sig_header)
    except ValueError as e:
        logger.error(f"[Webhook] Signature verification failed: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Webhook Error: {e}")

    try:
        result = await reconcile_event(db, event)
    except Exception as e:
        logger.exception(f"[Webhook] Error processing event {event.get('type')}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Webhook handler failed processing event.", "details": str(e)},
        )

    logger.info(f"[Webhook] {event.get('type')} -> {result.action}")
    return {"received": True}
