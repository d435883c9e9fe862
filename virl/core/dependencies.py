"""FastAPI dependencies wiring the quota engine to its storage backend.

Tests swap the backend with ``app.dependency_overrides[get_usage_store]``.
"""

from fastapi import Depends

from virl.db.session import get_session_factory
from virl.quota.engine import QuotaEngine
from virl.quota.store import UsageStore
from virl.quota.store_sql import SqlUsageStore


def get_usage_store() -> UsageStore:
    return SqlUsageStore(get_session_factory())


def get_quota_engine(store: UsageStore = Depends(get_usage_store)) -> QuotaEngine:
    return QuotaEngine(store)


__all__ = ["get_usage_store", "get_quota_engine"]
