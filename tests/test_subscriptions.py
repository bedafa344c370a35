from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from promptbuilder.models.subscription import Subscription
from promptbuilder.services.subscriptions import (
    UNKNOWN_PLAN,
    plan_id_from_price,
    reconcile_event,
    resolve_user_id,
    snapshot_from_subscription,
    subscription_id_for_event,
)

pytestmark = pytest.mark.anyio

USER_ID = "user-123"


def _stripe_subscription(status="active", period_end=1_900_000_000, **extra):
    sub = {
        "id": "sub_123",
        "object": "subscription",
        "status": status,
        "customer": "cus_123",
        "cancel_at_period_end": False,
        "trial_end": None,
        "metadata": {"supabase_user_id": USER_ID},
        "items": {
            "data": [
                {
                    "current_period_end": period_end,
                    "price": {"id": "price_pro", "metadata": {}, "product": {"id": "prod_pro", "metadata": {"app_plan_id": "pro"}}},
                }
            ]
        },
    }
    sub.update(extra)
    return sub


def _event(event_type, obj, created=1_700_000_000, event_id="evt_1"):
    return {"id": event_id, "type": event_type, "created": created, "data": {"object": obj}}


# ── Pure helpers ─────────────────────────────────────────────────────────────

def test_plan_id_resolution_order():
    assert plan_id_from_price({"metadata": {"app_plan_id": "team"}, "product": "prod_x"}) == "team"
    assert plan_id_from_price({"metadata": {}, "product": {"id": "prod_x", "metadata": {"app_plan_id": "pro"}}}) == "pro"
    assert plan_id_from_price({"metadata": {}, "product": {"id": "prod_x", "metadata": {}}}) == "prod_x"
    assert plan_id_from_price({"product": "prod_y"}) == "prod_y"
    assert plan_id_from_price(None) == UNKNOWN_PLAN


def test_snapshot_uses_item_period_end_then_subscription_level():
    snapshot = snapshot_from_subscription(_stripe_subscription(period_end=1_800_000_000))
    assert snapshot["plan_id"] == "pro"
    assert snapshot["status"] == "active"
    assert snapshot["stripe_customer_id"] == "cus_123"
    assert snapshot["current_period_end"] == datetime.fromtimestamp(1_800_000_000, tz=timezone.utc)

    legacy = _stripe_subscription(current_period_end=1_750_000_000)
    legacy["items"]["data"][0].pop("current_period_end")
    assert snapshot_from_subscription(legacy)["current_period_end"] == datetime.fromtimestamp(1_750_000_000, tz=timezone.utc)


def test_subscription_id_for_event():
    assert subscription_id_for_event("checkout.session.completed", {"mode": "payment", "customer": "c", "subscription": "s"}) is None
    assert subscription_id_for_event("checkout.session.completed", {"mode": "subscription", "customer": "c", "subscription": "sub_1"}) == "sub_1"
    assert subscription_id_for_event("customer.subscription.updated", {"id": "sub_2"}) == "sub_2"
    assert subscription_id_for_event("invoice.paid", {"subscription": "sub_3"}) == "sub_3"
    invoice = {"parent": {"subscription_details": {"subscription": "sub_4"}}}
    assert subscription_id_for_event("invoice.payment_failed", invoice) == "sub_4"


# ── Identity resolution ──────────────────────────────────────────────────────


async def test_resolve_user_prefers_event_metadata():
    with patch("promptbuilder.services.billing.retrieve_customer", new=AsyncMock()) as retrieve:
        user_id = await resolve_user_id({"metadata": {"supabase_user_id": "from-event"}}, _stripe_subscription())
    assert user_id == "from-event"
    retrieve.assert_not_called()


async def test_resolve_user_falls_back_to_customer_lookup():
    sub = _stripe_subscription(metadata={})
    customer = {"id": "cus_123", "metadata": {"supabase_user_id": "from-customer"}}
    with patch("promptbuilder.services.billing.retrieve_customer", new=AsyncMock(return_value=customer)) as retrieve:
        assert await resolve_user_id({}, sub) == "from-customer"
    retrieve.assert_awaited_once_with("cus_123")


async def test_resolve_user_ignores_deleted_customer():
    with patch("promptbuilder.services.billing.retrieve_customer", new=AsyncMock(return_value={"id": "cus_1", "deleted": True})):
        assert await resolve_user_id({}, None, "cus_1") is None


# ── Reconciliation ───────────────────────────────────────────────────────────

async def _stored(db):
    result = await db.execute(select(Subscription).where(Subscription.user_id == USER_ID).execution_options(populate_existing=True))
    return result.scalar_one_or_none()


async def test_subscription_event_upserts_row(db):
    with patch("promptbuilder.services.billing.retrieve_subscription", new=AsyncMock(return_value=_stripe_subscription())):
        result = await reconcile_event(db, _event("customer.subscription.updated", {"id": "sub_123"}))
    await db.commit()

    assert result.action == "updated"
    row = await _stored(db)
    assert row.plan_id == "pro"
    assert row.status == "active"
    assert row.stripe_subscription_id == "sub_123"


async def test_older_event_does_not_overwrite_newer_state(db):
    newer = _stripe_subscription(status="canceled")
    older = _stripe_subscription(status="active")

    with patch("promptbuilder.services.billing.retrieve_subscription", new=AsyncMock(return_value=newer)):
        await reconcile_event(db, _event("customer.subscription.deleted", {"id": "sub_123"}, created=2_000))
    with patch("promptbuilder.services.billing.retrieve_subscription", new=AsyncMock(return_value=older)):
        result = await reconcile_event(db, _event("customer.subscription.updated", {"id": "sub_123"}, created=1_000))
    await db.commit()

    assert result.action == "stale"
    assert (await _stored(db)).status == "canceled"


async def test_event_without_timestamp_keeps_ordering_guard(db):
    with patch("promptbuilder.services.billing.retrieve_subscription", new=AsyncMock(return_value=_stripe_subscription(status="canceled"))):
        await reconcile_event(db, _event("customer.subscription.deleted", {"id": "sub_123"}, created=2_000))

    untimed = _event("customer.subscription.updated", {"id": "sub_123"})
    untimed.pop("created")
    with patch("promptbuilder.services.billing.retrieve_subscription", new=AsyncMock(return_value=_stripe_subscription(status="past_due"))):
        result = await reconcile_event(db, untimed)
    await db.commit()
    assert result.action == "updated"
    row = await _stored(db)
    assert row.status == "past_due"
    assert row.last_event_at is not None

    with patch("promptbuilder.services.billing.retrieve_subscription", new=AsyncMock(return_value=_stripe_subscription(status="active"))):
        result = await reconcile_event(db, _event("customer.subscription.updated", {"id": "sub_123"}, created=1_000))
    await db.commit()
    assert result.action == "stale"
    assert (await _stored(db)).status == "past_due"


async def test_unhandled_event_is_ignored(db):
    with patch("promptbuilder.services.billing.retrieve_subscription", new=AsyncMock()) as retrieve:
        result = await reconcile_event(db, _event("charge.refunded", {"id": "ch_1"}))
    assert result.action == "ignored"
    retrieve.assert_not_called()


async def test_unresolvable_user_writes_nothing(db):
    sub = _stripe_subscription(metadata={})
    with patch("promptbuilder.services.billing.retrieve_subscription", new=AsyncMock(return_value=sub)), \
            patch("promptbuilder.services.billing.retrieve_customer", new=AsyncMock(return_value={"id": "cus_123", "metadata": {}})):
        result = await reconcile_event(db, _event("customer.subscription.created", {"id": "sub_123"}))
    assert result.action == "skipped"
    assert await _stored(db) is None


async def test_customer_event_links_customer_once(db):
    event = _event("customer.created", {"id": "cus_new", "metadata": {"supabase_user_id": USER_ID}})
    result = await reconcile_event(db, event)
    await db.commit()
    assert result.action == "customer_linked"
    assert (await _stored(db)).stripe_customer_id == "cus_new"

    await reconcile_event(db, _event("customer.updated", {"id": "cus_other", "metadata": {"supabase_user_id": USER_ID}}))
    await db.commit()
    assert (await _stored(db)).stripe_customer_id == "cus_new"
