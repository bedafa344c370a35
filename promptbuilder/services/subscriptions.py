"""
Prompt Builder — Subscription Reconciler
Maps verified Stripe events onto the single per-user subscription row.

Every handled event re-reads the subscription from Stripe, so the stored row
is a snapshot of Stripe's current view rather than of the event payload.
Writes are atomic upserts keyed by user_id; an event older than the one that
produced the stored row does not overwrite it.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from promptbuilder.core.database import upsert
from promptbuilder.models.subscription import Subscription
from promptbuilder.services import billing
from promptbuilder.services.billing import USER_ID_METADATA_KEY

logger = logging.getLogger(__name__)

UNKNOWN_PLAN = "unknown_plan"

SUBSCRIPTION_EVENTS = (
    "customer.subscription.created",
    "customer.subscription.updated",
    "customer.subscription.deleted",
)
INVOICE_EVENTS = (
    "invoice.paid",
    "invoice.payment_succeeded",
    "invoice.payment_failed",
)
CUSTOMER_EVENTS = (
    "customer.created",
    "customer.updated",
)
CHECKOUT_COMPLETED = "checkout.session.completed"
HANDLED_EVENTS = (CHECKOUT_COMPLETED,) + SUBSCRIPTION_EVENTS + INVOICE_EVENTS + CUSTOMER_EVENTS


@dataclass(frozen=True)
class ReconcileResult:
    action: str  # updated, stale, customer_linked, skipped, ignored
    user_id: Optional[str] = None
    subscription_id: Optional[str] = None


# ── Payload helpers ──────────────────────────────────────────────────────────

def _id_of(value) -> Optional[str]:
    """Stripe fields are either an id string or an expanded object."""
    if isinstance(value, str):
        return value or None
    if isinstance(value, dict):
        return value.get("id")
    return None


def _timestamp(value) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _metadata_user_id(obj) -> Optional[str]:
    if not isinstance(obj, dict):
        return None
    return (obj.get("metadata") or {}).get(USER_ID_METADATA_KEY) or None


def _first_item(subscription: dict) -> dict:
    items = (subscription.get("items") or {}).get("data") or []
    return items[0] if items else {}


def plan_id_from_price(price: Optional[dict]) -> str:
    """Internal plan id: price metadata, then product metadata, then product id."""
    if not price:
        return UNKNOWN_PLAN
    plan_id = (price.get("metadata") or {}).get("app_plan_id")
    if plan_id:
        return plan_id
    product = price.get("product")
    if isinstance(product, dict):
        return (product.get("metadata") or {}).get("app_plan_id") or product.get("id") or UNKNOWN_PLAN
    if isinstance(product, str) and product:
        return product
    return UNKNOWN_PLAN


def snapshot_from_subscription(subscription: dict) -> dict:
    """Columns of the subscriptions row derived from a Stripe subscription."""
    item = _first_item(subscription)
    period_end = item.get("current_period_end") or subscription.get("current_period_end")
    return {
        "plan_id": plan_id_from_price(item.get("price")),
        "status": subscription.get("status"),
        "stripe_customer_id": _id_of(subscription.get("customer")),
        "stripe_subscription_id": subscription.get("id"),
        "current_period_end": _timestamp(period_end),
        "trial_ends_at": _timestamp(subscription.get("trial_end")),
        "cancel_at_period_end": bool(subscription.get("cancel_at_period_end")),
    }


def subscription_id_for_event(event_type: str, obj: dict) -> Optional[str]:
    if event_type == CHECKOUT_COMPLETED:
        if obj.get("mode") != "subscription" or not obj.get("customer"):
            return None
        return _id_of(obj.get("subscription"))
    if event_type in SUBSCRIPTION_EVENTS:
        return obj.get("id")
    if event_type in INVOICE_EVENTS:
        sub_id = _id_of(obj.get("subscription"))
        if not sub_id:
            details = (obj.get("parent") or {}).get("subscription_details") or {}
            sub_id = _id_of(details.get("subscription"))
        return sub_id
    return None


def customer_id_for_event(event_type: str, obj: dict) -> Optional[str]:
    if event_type in CUSTOMER_EVENTS:
        return obj.get("id")
    return _id_of(obj.get("customer"))


# ── Identity resolution ──────────────────────────────────────────────────────

async def resolve_user_id(
    event_object: dict,
    subscription: Optional[dict] = None,
    customer_id: Optional[str] = None,
) -> Optional[str]:
    """
    Find the internal user for an event, preferring data already in hand:
    event metadata, subscription metadata, expanded customer metadata, and
    finally a customer lookup against Stripe.
    """
    user_id = _metadata_user_id(event_object)
    if user_id:
        return user_id

    if subscription:
        user_id = _metadata_user_id(subscription)
        if user_id:
            return user_id
        customer = subscription.get("customer")
        if isinstance(customer, dict) and "metadata" in customer:
            return _metadata_user_id(customer)
        customer_id = customer_id or _id_of(customer)

    if not customer_id:
        return None

    try:
        customer = await billing.retrieve_customer(customer_id)
    except Exception as e:
        logger.error(f"[Webhook] Error retrieving customer {customer_id} for user id: {e}")
        return None
    if not customer or customer.get("deleted"):
        return None
    return _metadata_user_id(customer)


# ── Persistence ──────────────────────────────────────────────────────────────

async def upsert_subscription(
    db: AsyncSession,
    user_id: str,
    snapshot: dict,
    event_created: Optional[datetime] = None,
) -> bool:
    """Write a snapshot for the user. Returns False when a newer event already won."""
    now = datetime.now(timezone.utc)
    values = {"user_id": user_id, **snapshot, "updated_at": now, "last_event_at": event_created}
    table = Subscription.__table__

    stmt = upsert(
        db,
        Subscription,
        values,
        index_elements=["user_id"],
        where=lambda ins: or_(
            table.c.last_event_at.is_(None),
            ins.excluded.last_event_at.is_(None),
            table.c.last_event_at <= ins.excluded.last_event_at,
        ),
        # an event without a timestamp must not clear the stored one
        set_overrides=lambda ins: {
            "last_event_at": func.coalesce(ins.excluded.last_event_at, table.c.last_event_at),
        },
    )
    result = await db.execute(stmt)
    applied = result.rowcount != 0
    if applied:
        logger.info(
            f"[Webhook] Subscription for user {user_id}: plan={snapshot.get('plan_id')}, "
            f"status={snapshot.get('status')}, stripe_sub={snapshot.get('stripe_subscription_id')}"
        )
    else:
        logger.warning(f"[Webhook] Ignored out-of-order event for user {user_id} (stored state is newer)")
    return applied


async def link_customer(db: AsyncSession, user_id: str, customer_id: str) -> bool:
    """Record the Stripe customer for a user that has none stored yet."""
    result = await db.execute(select(Subscription).where(Subscription.user_id == user_id))
    existing = result.scalar_one_or_none()
    if existing and existing.stripe_customer_id:
        return False

    stmt = upsert(
        db,
        Subscription,
        {"user_id": user_id, "stripe_customer_id": customer_id, "updated_at": datetime.now(timezone.utc)},
        index_elements=["user_id"],
    )
    await db.execute(stmt)
    logger.info(f"[Webhook] Linked Stripe customer {customer_id} to user {user_id}")
    return True


# ── Entry point ──────────────────────────────────────────────────────────────

async def reconcile_event(db: AsyncSession, event: dict) -> ReconcileResult:
    """Apply one verified Stripe event to the subscriptions table."""
    event_type = event.get("type", "")
    obj = (event.get("data") or {}).get("object") or {}
    logger.info(f"[Webhook] Received event: {event_type}, ID: {event.get('id')}")

    if event_type not in HANDLED_EVENTS:
        logger.info(f"[Webhook] Unhandled event type: {event_type}")
        return ReconcileResult("ignored")

    subscription = None
    subscription_id = subscription_id_for_event(event_type, obj)
    if subscription_id:
        subscription = await billing.retrieve_subscription(subscription_id)
    elif event_type in INVOICE_EVENTS:
        logger.warning(f"[Webhook] {event_type}: No subscription ID on invoice.")

    customer_id = customer_id_for_event(event_type, obj)
    user_id = await resolve_user_id(obj, subscription, customer_id)
    logger.info(f"[Webhook] Resolved user id: {user_id}")

    if subscription and user_id:
        applied = await upsert_subscription(
            db,
            user_id,
            snapshot_from_subscription(subscription),
            event_created=_timestamp(event.get("created")),
        )
        return ReconcileResult("updated" if applied else "stale", user_id, subscription.get("id"))

    if user_id and customer_id:
        await link_customer(db, user_id, customer_id)
        return ReconcileResult("customer_linked", user_id)

    logger.error(f"[Webhook] Could not process {event_type}: missing subscription or user id.")
    return ReconcileResult("skipped", user_id, subscription_id)
