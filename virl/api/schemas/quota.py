"""Quota API Pydantic schemas.

Limits are integers on the wire; -1 means unlimited.
"""

from typing import Literal

from pydantic import BaseModel, Field

from virl.quota.catalog import PlanLimits, is_unlimited

UNLIMITED_WIRE = -1


def limit_to_wire(limit: float) -> int:
    return UNLIMITED_WIRE if is_unlimited(limit) else int(limit)


# ---------- Plans ----------


class PlanLimitsResponse(BaseModel):
    members: int
    workspaces: int
    storage_bytes: int
    sparks_per_month: int

    @classmethod
    def from_limits(cls, limits: PlanLimits) -> "PlanLimitsResponse":
        return cls(
            members=limit_to_wire(limits.members),
            workspaces=limit_to_wire(limits.workspaces),
            storage_bytes=limit_to_wire(limits.storage_bytes),
            sparks_per_month=limit_to_wire(limits.sparks_per_month),
        )


class PlanResponse(BaseModel):
    tier: str
    limits: PlanLimitsResponse


# ---------- Usage ----------


class UsageSummaryResponse(BaseModel):
    workspace_id: str
    plan_tier: str
    spark_count: int
    limit: int
    remaining: int
    used_by_workspace: int
    usage_month: str


class QuotaDecisionResponse(BaseModel):
    allowed: bool
    current_usage: int
    limit: int
    message: str | None = None


# ---------- Workspaces ----------


class WorkspaceCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class WorkspaceResponse(BaseModel):
    id: str
    name: str
    owner_id: str
    plan_tier: str  # resolved tier, never the raw stored value
    subscription_end_date: str | None
    limits: PlanLimitsResponse


class MemberAdd(BaseModel):
    user_id: str = Field(min_length=1)
    role: Literal["admin", "member"] = "member"


class MemberResponse(BaseModel):
    workspace_id: str
    user_id: str
    role: str
    member_count: int
    member_limit: int


# ---------- Admin ----------


class PlanChange(BaseModel):
    plan_tier: Literal["basic", "pro", "custom"]


class LimitOverridesUpdate(BaseModel):
    """Omitted fields stay untouched; explicit null resets to the tier default."""

    # Column widths: custom_storage_limit is BIGINT, the others INTEGER.
    # Negative values pass through to the service, which answers 400.
    storage_bytes: int | None = Field(default=None, le=2**63 - 1)
    members: int | None = Field(default=None, le=2**31 - 1)
    workspaces: int | None = Field(default=None, le=2**31 - 1)
    sparks_per_month: int | None = Field(default=None, le=2**31 - 1)


class OverridesResponse(BaseModel):
    storage_bytes: int | None
    members: int | None
    workspaces: int | None
    sparks_per_month: int | None


class AdminWorkspaceDetail(BaseModel):
    id: str
    name: str
    plan_tier: str
    subscription_end_date: str | None
    overrides: OverridesResponse
    effective_limits: PlanLimitsResponse


class AccountDetail(BaseModel):
    owner_id: str
    workspaces: list[AdminWorkspaceDetail]
    global_spark_limit: int
    global_spark_usage: int
