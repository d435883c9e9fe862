"""MonthlyUsage model: one spark counter per (workspace, calendar month)."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint

from virl.db.base import Base


class MonthlyUsage(Base):
    __tablename__ = "monthly_usage"
    __table_args__ = (
        UniqueConstraint("workspace_id", "usage_month", name="uq_monthly_usage_workspace_month"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    workspace_id = Column(
        String(36),
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    usage_month = Column(String(10), nullable=False)  # YYYY-MM-01
    spark_count = Column(Integer, nullable=False, default=1)

    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
