"""
Prompt Builder — Access Gate
Decides whether a subscription snapshot unlocks managed-key AI features.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from promptbuilder.core.config import settings
from promptbuilder.models.subscription import Subscription

logger = logging.getLogger(__name__)

NO_SUBSCRIPTION_MESSAGE = (
    "No subscription found. Access to AI-powered features requires an active subscription or trial."
)
INACTIVE_SUBSCRIPTION_MESSAGE = "Access to AI-powered features requires an active subscription or trial."


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_paid_plan(plan_id: Optional[str]) -> bool:
    return bool(plan_id) and plan_id.lower() != settings.FREE_PLAN_ID.lower()


def evaluate_access(subscription: Optional[Subscription], now: Optional[datetime] = None) -> AccessDecision:
    now = _as_utc(now) or datetime.now(timezone.utc)

    if subscription is None:
        return AccessDecision(False, NO_SUBSCRIPTION_MESSAGE)

    trial_ends_at = _as_utc(subscription.trial_ends_at)
    period_ends_at = _as_utc(subscription.current_period_end)

    if subscription.status == "trialing" and trial_ends_at and trial_ends_at > now:
        return AccessDecision(True, f"Trial active until {trial_ends_at.isoformat()}")

    if (
        is_paid_plan(subscription.plan_id)
        and subscription.status == "active"
        and period_ends_at
        and period_ends_at > now
    ):
        return AccessDecision(True, f"Plan '{subscription.plan_id}' active until {period_ends_at.isoformat()}")

    logger.info(
        f"Access denied for user {subscription.user_id}: plan={subscription.plan_id}, "
        f"status={subscription.status}, trial_ends_at={trial_ends_at}, period_ends_at={period_ends_at}"
    )
    return AccessDecision(False, INACTIVE_SUBSCRIPTION_MESSAGE)
