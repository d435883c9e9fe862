"""Tests for subscription status resolution."""

from datetime import timedelta

import pytest

from virl.quota.catalog import PlanTier
from virl.quota.subscription import resolve_tier

pytestmark = pytest.mark.unit


def test_basic_stays_basic_regardless_of_end_date(now):
    assert resolve_tier("basic", now + timedelta(days=10), now) is PlanTier.BASIC
    assert resolve_tier("basic", None, now) is PlanTier.BASIC


@pytest.mark.parametrize("tier", ["pro", "custom"])
def test_paid_tier_without_end_date_is_permanent(tier, now):
    assert resolve_tier(tier, None, now) is PlanTier(tier)


@pytest.mark.parametrize("tier", ["pro", "custom"])
def test_paid_tier_active_until_end_date(tier, now):
    assert resolve_tier(tier, now + timedelta(days=1), now) is PlanTier(tier)


@pytest.mark.parametrize("tier", ["pro", "custom"])
def test_lapsed_paid_tier_resolves_to_basic(tier, now):
    assert resolve_tier(tier, now - timedelta(seconds=1), now) is PlanTier.BASIC


def test_end_date_equal_to_now_is_still_active(now):
    assert resolve_tier("pro", now, now) is PlanTier.PRO


def test_unknown_or_missing_tier_is_basic(now):
    assert resolve_tier("enterprise", None, now) is PlanTier.BASIC
    assert resolve_tier(None, None, now) is PlanTier.BASIC


def test_naive_end_date_is_read_as_utc(now):
    naive_future = (now + timedelta(hours=1)).replace(tzinfo=None)
    naive_past = (now - timedelta(hours=1)).replace(tzinfo=None)

    assert resolve_tier("pro", naive_future, now) is PlanTier.PRO
    assert resolve_tier("pro", naive_past, now) is PlanTier.BASIC


def test_defaults_to_wall_clock():
    # An end date far in the past lapses against the real clock
    from datetime import UTC, datetime

    assert resolve_tier("pro", datetime(2000, 1, 1, tzinfo=UTC)) is PlanTier.BASIC
