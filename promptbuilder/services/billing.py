"""
Prompt Builder Backend — Billing Service
Stripe dual-mode (test/live) integration for subscription management.
"""
import logging
from typing import Optional

import stripe

from promptbuilder.core.config import settings

logger = logging.getLogger(__name__)

USER_ID_METADATA_KEY = "supabase_user_id"


def _init_stripe():
    """Initialize Stripe with the active mode key."""
    stripe.api_key = settings.active_stripe_secret_key


def get_stripe_mode() -> str:
    """Return the current Stripe mode."""
    return settings.STRIPE_MODE


def to_plain(obj) -> Optional[dict]:
    """Turn a StripeObject (or an already plain value) into nested dicts/lists."""
    if obj is None:
        return None
    if isinstance(obj, stripe.StripeObject):
        return obj.to_dict()
    return obj


async def create_customer(email: Optional[str], user_id: str) -> str:
    """Create a Stripe customer linked to our user and return the customer ID."""
    _init_stripe()
    try:
        customer = stripe.Customer.create(
            email=email,
            metadata={
                USER_ID_METADATA_KEY: user_id,
                "stripe_mode": settings.STRIPE_MODE,
            },
        )
        return customer.id
    except stripe.StripeError as e:
        logger.error(f"Stripe customer creation failed: {str(e)}")
        raise


async def create_checkout_session(
    customer_id: str,
    price_id: str,
    user_id: str,
    success_url: str,
    cancel_url: str,
) -> dict:
    """Create a Stripe Checkout session for a subscription price."""
    _init_stripe()
    try:
        session = stripe.checkout.Session.create(
            customer=customer_id,
            payment_method_types=["card"],
            line_items=[{"price": price_id, "quantity": 1}],
            mode="subscription",
            success_url=success_url,
            cancel_url=cancel_url,
            metadata={USER_ID_METADATA_KEY: user_id},
            subscription_data={"metadata": {USER_ID_METADATA_KEY: user_id}},
        )
        return {"session_id": session.id, "url": session.url}
    except stripe.StripeError as e:
        logger.error(f"Stripe checkout creation failed: {str(e)}")
        raise


async def retrieve_checkout_session(session_id: str) -> dict:
    _init_stripe()
    try:
        return to_plain(stripe.checkout.Session.retrieve(session_id))
    except stripe.StripeError as e:
        logger.error(f"Stripe checkout session retrieval failed: {str(e)}")
        raise


async def create_portal_session(customer_id: str, return_url: str) -> str:
    """Create a billing portal session and return its URL."""
    _init_stripe()
    try:
        portal = stripe.billing_portal.Session.create(customer=customer_id, return_url=return_url)
        return portal.url
    except stripe.StripeError as e:
        logger.error(f"Stripe portal session creation failed: {str(e)}")
        raise


async def retrieve_subscription(subscription_id: str) -> dict:
    """Get the current subscription state from Stripe, with prices and products expanded."""
    _init_stripe()
    try:
        subscription = stripe.Subscription.retrieve(
            subscription_id,
            expand=["items.data.price.product"],
        )
        return to_plain(subscription)
    except stripe.StripeError as e:
        logger.error(f"Stripe subscription retrieval failed: {str(e)}")
        raise


async def retrieve_customer(customer_id: str) -> dict:
    _init_stripe()
    try:
        return to_plain(stripe.Customer.retrieve(customer_id))
    except stripe.StripeError as e:
        logger.error(f"Stripe customer retrieval failed: {str(e)}")
        raise


def construct_event(payload: bytes, sig_header: str) -> dict:
    """Verify a Stripe webhook signature using the active webhook secret."""
    _init_stripe()
    webhook_secret = settings.active_stripe_webhook_secret
    try:
        event = stripe.Webhook.construct_event(payload, sig_header, webhook_secret)
    except ValueError as e:
        raise ValueError(f"Invalid payload: {e}")
    except stripe.SignatureVerificationError as e:
        raise ValueError(f"Invalid signature: {e}")
    return to_plain(event)
