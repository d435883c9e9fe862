"""Workspace model: stored plan tier, subscription window and limit overrides."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import BigInteger, Column, DateTime, Integer, String

from virl.db.base import Base


class Workspace(Base):
    __tablename__ = "workspaces"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    owner_id = Column(String(255), nullable=False, index=True)

    # Plan (raw stored value; read through the subscription resolver)
    plan_tier = Column(String(50), nullable=False, default="basic")
    subscription_end_date = Column(DateTime(timezone=True), nullable=True)

    # Admin overrides (nullable = use plan default)
    custom_storage_limit = Column(BigInteger, nullable=True)  # bytes
    custom_member_limit = Column(Integer, nullable=True)
    custom_workspace_limit = Column(Integer, nullable=True)
    custom_vixi_spark_limit = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
