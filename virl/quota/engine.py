"""QuotaEngine: cross-workspace aggregation, quota gate and usage ledger.

AI generation usage is pooled per account: the ceiling is the best
effective limit across every workspace the owner holds (unlimited wins),
and usage is the sum of every owned workspace's counter for the current
month. An account cannot widen its allowance by spreading generations over
several workspaces.

The gate is a read and the ledger write happens later, only after the
metered action succeeds. Nothing locks between the two, so concurrent
callers can both pass with a single unit of headroom left.
"""

from dataclasses import dataclass
from datetime import datetime

import structlog

from virl.core.exceptions import WorkspaceNotFoundError
from virl.quota.catalog import PlanTier, Resource, default_limits, is_unlimited
from virl.quota.limits import effective_limits
from virl.quota.store import UsageStore, WorkspaceRecord, current_month_key
from virl.quota.subscription import resolve_tier

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class QuotaDecision:
    allowed: bool
    current_usage: float
    limit: float
    message: str | None = None


@dataclass(frozen=True)
class UsageSummary:
    plan_tier: PlanTier
    spark_count: int  # account-wide, used for enforcement
    limit: float
    remaining: float
    used_by_workspace: int  # this workspace only, display


def _limit_label(limit: float) -> str:
    return "unlimited" if is_unlimited(limit) else f"{int(limit)}"


_BYTE_UNITS = ("Bytes", "KB", "MB", "GB", "TB")


def _format_bytes(size: float) -> str:
    if is_unlimited(size):
        return "Unlimited"
    if size <= 0:
        return "0 Bytes"
    unit = 0
    while size >= 1024 and unit < len(_BYTE_UNITS) - 1:
        size /= 1024
        unit += 1
    return f"{size:.2f}".rstrip("0").rstrip(".") + f" {_BYTE_UNITS[unit]}"


class QuotaEngine:
    """Plan and usage decisions for one storage backend."""

    def __init__(self, store: UsageStore):
        self.store = store

    # ---------- per-workspace resolution ----------

    @staticmethod
    def tier_of(workspace: WorkspaceRecord, now: datetime | None = None) -> PlanTier:
        return resolve_tier(workspace.plan_tier, workspace.subscription_end_date, now)

    def limits_of(self, workspace: WorkspaceRecord, now: datetime | None = None):
        return effective_limits(self.tier_of(workspace, now), workspace.overrides)

    async def resolved_tier(self, workspace_id: str, now: datetime | None = None) -> PlanTier:
        """Tier in force for a workspace; unknown workspaces are basic."""
        workspace = await self.store.get_workspace(workspace_id)
        if workspace is None:
            return PlanTier.BASIC
        return self.tier_of(workspace, now)

    # ---------- aggregation ----------

    async def global_ceiling(
        self,
        owner_id: str,
        resource: Resource = Resource.SPARKS,
        now: datetime | None = None,
    ) -> float:
        """Highest effective limit for `resource` across the owner's workspaces.

        Any unlimited workspace makes the result unlimited. An owner with no
        workspaces gets the basic default.
        """
        workspaces = await self.store.list_owned_workspaces(owner_id) if owner_id else []
        if not workspaces:
            return default_limits(PlanTier.BASIC).get(resource)

        ceiling = 0.0
        for workspace in workspaces:
            limit = self.limits_of(workspace, now).get(resource)
            if is_unlimited(limit):
                return limit
            ceiling = max(ceiling, limit)
        return ceiling

    async def global_usage(self, owner_id: str, now: datetime | None = None) -> int:
        """Sum of current-month spark counters across the owner's workspaces."""
        workspaces = await self.store.list_owned_workspaces(owner_id) if owner_id else []
        if not workspaces:
            return 0
        counts = await self.store.get_spark_counts([w.id for w in workspaces], current_month_key(now))
        return sum(counts.get(w.id, 0) for w in workspaces)

    async def workspace_usage(self, workspace_id: str, now: datetime | None = None) -> int:
        """This workspace's own counter for the current month (display only)."""
        counts = await self.store.get_spark_counts([workspace_id], current_month_key(now))
        return counts.get(workspace_id, 0)

    async def usage_summary(self, workspace_id: str, now: datetime | None = None) -> UsageSummary:
        workspace = await self.store.get_workspace(workspace_id)
        owner_id = workspace.owner_id if workspace is not None else ""
        tier = self.tier_of(workspace, now) if workspace is not None else PlanTier.BASIC

        limit = await self.global_ceiling(owner_id, Resource.SPARKS, now)
        used = await self.global_usage(owner_id, now)
        local = await self.workspace_usage(workspace_id, now) if workspace is not None else 0

        remaining = limit if is_unlimited(limit) else max(0, limit - used)
        return UsageSummary(
            plan_tier=tier,
            spark_count=used,
            limit=limit,
            remaining=remaining,
            used_by_workspace=local,
        )

    # ---------- gates ----------

    async def check_allowed(self, workspace_id: str, now: datetime | None = None) -> QuotaDecision:
        """Decide whether one more spark may be spent on behalf of a workspace.

        Never raises on denial. A workspace without a resolvable owner falls
        back to basic limits with zero usage.
        """
        workspace = await self.store.get_workspace(workspace_id)
        owner_id = workspace.owner_id if workspace is not None else ""

        limit = await self.global_ceiling(owner_id, Resource.SPARKS, now)
        used = await self.global_usage(owner_id, now)

        if is_unlimited(limit) or used < limit:
            return QuotaDecision(allowed=True, current_usage=used, limit=limit)

        logger.info("quota_denied", workspace_id=workspace_id, owner_id=owner_id, used=used, limit=limit)
        return QuotaDecision(
            allowed=False,
            current_usage=used,
            limit=limit,
            message=(
                f"Account limit reached. You've used all {_limit_label(limit)} Vixi Sparks "
                "across your workspaces this month. Upgrade your plan for more!"
            ),
        )

    async def check_workspace_capacity(self, owner_id: str, now: datetime | None = None) -> QuotaDecision:
        """Whether the owner may create another workspace."""
        owned = await self.store.list_owned_workspaces(owner_id)
        limit = await self.global_ceiling(owner_id, Resource.WORKSPACES, now)
        count = len(owned)

        if is_unlimited(limit) or count < limit:
            return QuotaDecision(allowed=True, current_usage=count, limit=limit)
        return QuotaDecision(
            allowed=False,
            current_usage=count,
            limit=limit,
            message=f"Workspace limit reached ({count}/{_limit_label(limit)}). Upgrade to Pro for more workspaces!",
        )

    async def check_member_capacity(self, workspace_id: str, now: datetime | None = None) -> QuotaDecision:
        """Whether another member may join a workspace (owner counts as a member).

        Raises:
            WorkspaceNotFoundError: if the workspace does not exist
        """
        workspace = await self.store.get_workspace(workspace_id)
        if workspace is None:
            raise WorkspaceNotFoundError(workspace_id)

        limit = self.limits_of(workspace, now).members
        count = await self.store.count_members(workspace_id)

        if is_unlimited(limit) or count < limit:
            return QuotaDecision(allowed=True, current_usage=count, limit=limit)
        return QuotaDecision(
            allowed=False,
            current_usage=count,
            limit=limit,
            message=f"Member limit reached ({count}/{_limit_label(limit)}). Upgrade to Pro for more team members!",
        )

    async def check_storage_capacity(
        self,
        workspace_id: str,
        used_bytes: int,
        new_file_bytes: int,
        now: datetime | None = None,
    ) -> QuotaDecision:
        """Whether an upload of `new_file_bytes` fits the owner's account storage.

        `used_bytes` is the account-wide total the caller measured. The limit is
        the best storage allowance across the owner's workspaces, and landing
        exactly on it is still allowed.

        Raises:
            WorkspaceNotFoundError: if the workspace does not exist
        """
        workspace = await self.store.get_workspace(workspace_id)
        if workspace is None:
            raise WorkspaceNotFoundError(workspace_id)

        limit = await self.global_ceiling(workspace.owner_id, Resource.STORAGE, now)
        would_use = used_bytes + new_file_bytes

        if is_unlimited(limit) or would_use <= limit:
            return QuotaDecision(allowed=True, current_usage=used_bytes, limit=limit)

        logger.info(
            "storage_denied",
            workspace_id=workspace_id,
            owner_id=workspace.owner_id,
            used=used_bytes,
            new_file=new_file_bytes,
            limit=limit,
        )
        return QuotaDecision(
            allowed=False,
            current_usage=used_bytes,
            limit=limit,
            message=(
                f"Account storage limit exceeded. Your account uses {_format_bytes(used_bytes)} "
                f"of {_format_bytes(limit)}. Upgrade to Custom for more!"
            ),
        )

    # ---------- ledger ----------

    async def increment(self, workspace_id: str, now: datetime | None = None) -> int:
        """Record one spark against the workspace's current-month counter.

        Returns:
            The owner's new account-wide usage, re-aggregated after the write

        Raises:
            WorkspaceNotFoundError: if the workspace does not exist
        """
        workspace = await self.store.get_workspace(workspace_id)
        if workspace is None:
            raise WorkspaceNotFoundError(workspace_id)

        month = current_month_key(now)
        counter = await self.store.increment_sparks(workspace_id, month)
        total = await self.global_usage(workspace.owner_id, now)

        logger.info(
            "usage_incremented",
            workspace_id=workspace_id,
            owner_id=workspace.owner_id,
            usage_month=month,
            workspace_count=counter,
            account_count=total,
        )
        return total
