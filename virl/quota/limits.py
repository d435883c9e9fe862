"""Effective limits: tier defaults merged with per-workspace admin overrides."""

from dataclasses import dataclass, fields

from virl.core.exceptions import InvalidOverrideError
from virl.quota.catalog import PlanLimits, PlanTier, default_limits


@dataclass(frozen=True)
class LimitOverrides:
    """Per-workspace manual overrides. None means "use the tier default"."""

    storage_bytes: int | None = None
    members: int | None = None
    workspaces: int | None = None
    sparks_per_month: int | None = None

    @classmethod
    def from_columns(cls, row) -> "LimitOverrides":
        """Build from an object carrying the custom_*_limit column attributes."""
        return cls(
            storage_bytes=getattr(row, "custom_storage_limit", None),
            members=getattr(row, "custom_member_limit", None),
            workspaces=getattr(row, "custom_workspace_limit", None),
            sparks_per_month=getattr(row, "custom_vixi_spark_limit", None),
        )


# Override field -> storage column
OVERRIDE_COLUMNS = {
    "storage_bytes": "custom_storage_limit",
    "members": "custom_member_limit",
    "workspaces": "custom_workspace_limit",
    "sparks_per_month": "custom_vixi_spark_limit",
}


def effective_limits(tier: PlanTier, overrides: LimitOverrides | None = None) -> PlanLimits:
    """Merge tier defaults with overrides. A present override wins, even 0."""
    base = default_limits(tier)
    if overrides is None:
        return base

    def pick(override: int | None, default: float) -> float:
        return override if override is not None else default

    return PlanLimits(
        members=pick(overrides.members, base.members),
        workspaces=pick(overrides.workspaces, base.workspaces),
        storage_bytes=pick(overrides.storage_bytes, base.storage_bytes),
        sparks_per_month=pick(overrides.sparks_per_month, base.sparks_per_month),
    )


def validate_overrides(values: dict[str, int | None]) -> None:
    """Reject negative overrides. 0 is valid and freezes the resource.

    Raises:
        InvalidOverrideError: for unknown fields or negative values
    """
    known = {f.name for f in fields(LimitOverrides)}
    for field, value in values.items():
        if field not in known:
            raise InvalidOverrideError(field, value)
        if value is not None and value < 0:
            raise InvalidOverrideError(field, value)
