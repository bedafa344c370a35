"""
Prompt Builder — Subscription Model
One Stripe subscription snapshot per user, written by the billing webhook.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, Boolean

from promptbuilder.core.database import Base


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), unique=True, nullable=False, index=True)
    plan_id = Column(String(255), default="free", nullable=False)
    status = Column(String(50), default="incomplete", nullable=False)  # active, trialing, past_due, canceled, incomplete, ...
    stripe_customer_id = Column(String(255), nullable=True, index=True)
    stripe_subscription_id = Column(String(255), nullable=True)
    current_period_end = Column(DateTime(timezone=True), nullable=True)
    trial_ends_at = Column(DateTime(timezone=True), nullable=True)
    cancel_at_period_end = Column(Boolean, default=False, nullable=False)
    last_event_at = Column(DateTime(timezone=True), nullable=True)  # `created` of the last applied Stripe event
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc), nullable=False)

    def __repr__(self):
        return f"<Subscription(user_id='{self.user_id}', plan='{self.plan_id}', status='{self.status}')>"
