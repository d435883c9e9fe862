"""Subscription status resolution.

The stored tier is never downgraded in storage when a subscription lapses;
it is degraded here, on every read.
"""

from datetime import datetime, timezone

from virl.quota.catalog import PlanTier, parse_tier


def resolve_tier(
    stored_tier: str | PlanTier | None,
    subscription_end: datetime | None,
    now: datetime | None = None,
) -> PlanTier:
    """Return the tier actually in force for a workspace.

    Args:
        stored_tier: Raw tier label from storage (unknown labels resolve to basic)
        subscription_end: End of the paid period, or None for a permanent grant
        now: Current time (for deterministic testing)

    Returns:
        basic for basic/unknown tiers or a lapsed subscription, else the stored tier
    """
    tier = parse_tier(stored_tier)
    if tier is PlanTier.BASIC:
        return PlanTier.BASIC

    if subscription_end is None:
        return tier

    now = now or datetime.now(timezone.utc)
    if subscription_end.tzinfo is None:
        subscription_end = subscription_end.replace(tzinfo=timezone.utc)

    if subscription_end < now:
        return PlanTier.BASIC
    return tier
