"""Plan catalog: default resource limits per plan tier.

`UNLIMITED` is the ceiling sentinel. It compares greater than every finite
limit, so folding with max() keeps it, and it is distinct from None, which
always means "not set".
"""

import math
from dataclasses import dataclass
from enum import Enum

UNLIMITED = math.inf

GIB = 1024 * 1024 * 1024


class PlanTier(str, Enum):
    BASIC = "basic"
    PRO = "pro"
    CUSTOM = "custom"


class Resource(str, Enum):
    """Metered or capped resources tracked per plan."""

    MEMBERS = "members"
    WORKSPACES = "workspaces"
    STORAGE = "storage"
    SPARKS = "sparks"


@dataclass(frozen=True)
class PlanLimits:
    members: float
    workspaces: float
    storage_bytes: float
    sparks_per_month: float

    def get(self, resource: Resource) -> float:
        return {
            Resource.MEMBERS: self.members,
            Resource.WORKSPACES: self.workspaces,
            Resource.STORAGE: self.storage_bytes,
            Resource.SPARKS: self.sparks_per_month,
        }[resource]


PLAN_LIMITS: dict[PlanTier, PlanLimits] = {
    PlanTier.BASIC: PlanLimits(
        members=3,  # creator + 2 invites
        workspaces=1,
        storage_bytes=5 * GIB,
        sparks_per_month=30,
    ),
    PlanTier.PRO: PlanLimits(
        members=10,  # creator + 9 invites
        workspaces=3,
        storage_bytes=50 * GIB,
        sparks_per_month=300,
    ),
    PlanTier.CUSTOM: PlanLimits(
        members=UNLIMITED,
        workspaces=UNLIMITED,
        storage_bytes=UNLIMITED,
        sparks_per_month=UNLIMITED,
    ),
}

# Highest first; used when a new workspace inherits the account's best plan
TIER_RANK = {
    PlanTier.CUSTOM: 2,
    PlanTier.PRO: 1,
    PlanTier.BASIC: 0,
}


def parse_tier(value: str | PlanTier | None) -> PlanTier:
    """Coerce a stored tier label to a PlanTier, defaulting to basic."""
    if isinstance(value, PlanTier):
        return value
    try:
        return PlanTier(value)
    except ValueError:
        return PlanTier.BASIC


def default_limits(tier: str | PlanTier | None) -> PlanLimits:
    """Return the catalog limits for a tier; unknown labels get basic limits."""
    return PLAN_LIMITS[parse_tier(tier)]


def is_unlimited(limit: float | None) -> bool:
    return limit is not None and math.isinf(limit)
