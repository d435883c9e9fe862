"""SubscriptionHistory model: append-only log of plan changes."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Integer, Numeric, String

from virl.db.base import Base


class SubscriptionHistory(Base):
    __tablename__ = "subscription_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False, index=True)
    plan_tier = Column(String(50), nullable=False)
    change_type = Column(String(50), nullable=False)  # upgrade, manual_adjustment

    amount = Column(Numeric(10, 2), nullable=True)
    currency = Column(String(3), nullable=False, default="INR")
    payment_method = Column(String(50), nullable=False)  # razorpay, manual
    transaction_id = Column(String(255), nullable=True, unique=True)  # one row per payment

    period_start = Column(DateTime(timezone=True), nullable=False)
    period_end = Column(DateTime(timezone=True), nullable=True)
    # "metadata" is reserved on declarative classes
    details = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
