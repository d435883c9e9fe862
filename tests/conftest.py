"""Shared test fixtures for all test groups."""

from datetime import UTC, datetime

import pytest

from virl.quota.engine import QuotaEngine
from virl.quota.store import current_month_key
from virl.quota.store_memory import InMemoryUsageStore


@pytest.fixture
def now():
    """Fixed clock: mid-June 2030, UTC."""
    return datetime(2030, 6, 15, 10, 30, 0, tzinfo=UTC)


@pytest.fixture
def month(now):
    return current_month_key(now)


@pytest.fixture
def store():
    """Fresh in-memory storage backend."""
    return InMemoryUsageStore()


@pytest.fixture
def engine(store):
    return QuotaEngine(store)
