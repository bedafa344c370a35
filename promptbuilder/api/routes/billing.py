"""
Prompt Builder Backend — Billing Routes
Stripe dual-mode (test/live) checkout, billing portal and subscription status.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

import stripe
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from promptbuilder.core.config import settings
from promptbuilder.core.database import get_db, upsert
from promptbuilder.core.security import AuthUser, get_current_user
from promptbuilder.models.subscription import Subscription
from promptbuilder.schemas.schemas import (
    CheckoutRequest,
    CheckoutResponse,
    CheckoutStatusResponse,
    PortalResponse,
    SubscriptionResponse,
)
from promptbuilder.services import billing
from promptbuilder.services.access import evaluate_access

logger = logging.getLogger(__name__)
router = APIRouter()


async def _get_subscription(db: AsyncSession, user_id: str) -> Optional[Subscription]:
    result = await db.execute(select(Subscription).where(Subscription.user_id == user_id))
    return result.scalar_one_or_none()


@router.get(
    "/billing-config",
    summary="Get billing config",
    description="Get the current Stripe configuration (publishable key and mode).",
)
async def get_billing_config():
    """Return the publishable key and mode for frontend Stripe.js."""
    return {
        "stripe_mode": billing.get_stripe_mode(),
        "publishable_key": settings.active_stripe_publishable_key,
    }


@router.post(
    "/checkout-session",
    response_model=CheckoutResponse,
    summary="Create checkout session",
    description="Create a Stripe Checkout session for a subscription price.",
)
async def create_checkout(
    request: CheckoutRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    subscription = await _get_subscription(db, current_user.id)
    customer_id = subscription.stripe_customer_id if subscription else None

    # Create Stripe customer if needed
    if not customer_id:
        logger.info(f"[Checkout] No Stripe customer for user {current_user.id}, creating one")
        try:
            customer_id = await billing.create_customer(email=current_user.email, user_id=current_user.id)
        except stripe.StripeError as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail={"error": "Failed to create Stripe customer.", "details": str(e)},
            )
        await db.execute(
            upsert(
                db,
                Subscription,
                {
                    "user_id": current_user.id,
                    "stripe_customer_id": customer_id,
                    "plan_id": settings.FREE_PLAN_ID,
                    "status": "incomplete",
                    "updated_at": datetime.now(timezone.utc),
                },
                index_elements=["user_id"],
                update_columns=["stripe_customer_id", "updated_at"],
            )
        )
        # Committed before checkout: the customer id must survive a failed session
        await db.commit()
        logger.info(f"[Checkout] Created Stripe customer {customer_id} for user {current_user.id}")
    else:
        logger.info(f"[Checkout] Using existing Stripe customer {customer_id} for user {current_user.id}")

    try:
        session = await billing.create_checkout_session(
            customer_id=customer_id,
            price_id=request.price_id,
            user_id=current_user.id,
            success_url=f"{settings.APP_URL}/dashboard/billing?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{settings.APP_URL}/pricing",
        )
    except stripe.StripeError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Failed to create checkout session.", "details": str(e)},
        )
    return CheckoutResponse(**session)


@router.get(
    "/checkout-session/status",
    response_model=CheckoutStatusResponse,
    summary="Checkout session status",
    description="Confirm that a completed checkout session has been paid.",
)
async def checkout_session_status(session_id: Optional[str] = Query(default=None)):
    if not session_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Checkout session ID is required.")

    try:
        session = await billing.retrieve_checkout_session(session_id)
    except stripe.StripeError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Failed to retrieve checkout session.", "details": str(e)},
        )

    if session and session.get("payment_status") == "paid" and session.get("status") == "complete":
        customer = session.get("customer")
        return CheckoutStatusResponse(
            success=True,
            status=session.get("status"),
            payment_status=session.get("payment_status"),
            customer=customer.get("id") if isinstance(customer, dict) else customer,
        )

    raise HTTPException(
        status_code=status.HTTP_402_PAYMENT_REQUIRED,
        detail={
            "success": False,
            "error": "Subscription payment not confirmed or session not complete.",
            "status": (session or {}).get("status"),
            "payment_status": (session or {}).get("payment_status"),
        },
    )


@router.post(
    "/portal-session",
    response_model=PortalResponse,
    summary="Create billing portal session",
    description="Open the Stripe customer portal for the current user.",
)
async def create_portal(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    subscription = await _get_subscription(db, current_user.id)
    if not subscription or not subscription.stripe_customer_id:
        logger.error(f"[Portal] No Stripe customer found for user {current_user.id}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No Stripe customer found.")

    try:
        url = await billing.create_portal_session(subscription.stripe_customer_id, settings.portal_return_url)
    except stripe.StripeError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e) or "Failed to create portal session.",
        )
    return PortalResponse(url=url)


@router.get(
    "/subscription",
    response_model=SubscriptionResponse,
    summary="Get current subscription",
    description="Get the current user's subscription snapshot and whether it grants AI access.",
)
async def get_subscription_status(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    subscription = await _get_subscription(db, current_user.id)
    decision = evaluate_access(subscription)

    if not subscription:
        return SubscriptionResponse(
            plan_id=settings.FREE_PLAN_ID,
            status="none",
            has_access=decision.allowed,
            access_reason=decision.reason,
        )

    response = SubscriptionResponse.model_validate(subscription)
    response.has_access = decision.allowed
    response.access_reason = decision.reason
    return response
