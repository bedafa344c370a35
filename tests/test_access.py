from datetime import datetime, timedelta, timezone

from promptbuilder.models.subscription import Subscription
from promptbuilder.services.access import (
    INACTIVE_SUBSCRIPTION_MESSAGE,
    NO_SUBSCRIPTION_MESSAGE,
    evaluate_access,
)

NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


def _sub(**kwargs):
    fields = {"user_id": "u1", "plan_id": "pro", "status": "active"}
    fields.update(kwargs)
    return Subscription(**fields)


def test_no_subscription_is_denied():
    decision = evaluate_access(None, NOW)
    assert not decision.allowed
    assert decision.reason == NO_SUBSCRIPTION_MESSAGE


def test_active_paid_plan_within_period():
    decision = evaluate_access(_sub(current_period_end=NOW + timedelta(days=3)), NOW)
    assert decision.allowed


def test_active_paid_plan_past_period_end():
    decision = evaluate_access(_sub(current_period_end=NOW - timedelta(seconds=1)), NOW)
    assert not decision.allowed
    assert decision.reason == INACTIVE_SUBSCRIPTION_MESSAGE


def test_free_plan_never_grants_access():
    for plan in ("free", "FREE"):
        assert not evaluate_access(_sub(plan_id=plan, current_period_end=NOW + timedelta(days=3)), NOW).allowed


def test_trial_in_future_grants_access_regardless_of_plan():
    sub = _sub(plan_id="free", status="trialing", trial_ends_at=NOW + timedelta(days=1))
    assert evaluate_access(sub, NOW).allowed


def test_expired_trial_is_denied():
    sub = _sub(status="trialing", trial_ends_at=NOW - timedelta(days=1), current_period_end=NOW + timedelta(days=1))
    assert not evaluate_access(sub, NOW).allowed


def test_non_active_status_is_denied():
    for status in ("past_due", "canceled", "incomplete", "unpaid"):
        assert not evaluate_access(_sub(status=status, current_period_end=NOW + timedelta(days=1)), NOW).allowed


def test_naive_datetimes_are_treated_as_utc():
    sub = _sub(current_period_end=(NOW + timedelta(hours=1)).replace(tzinfo=None))
    assert evaluate_access(sub, NOW).allowed
