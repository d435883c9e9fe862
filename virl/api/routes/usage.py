"""Usage routes: monthly spark summary and pre-flight quota check."""

from fastapi import APIRouter, Depends, HTTPException

from virl.api.schemas.quota import QuotaDecisionResponse, UsageSummaryResponse, limit_to_wire
from virl.core.auth import AuthUser, require_auth
from virl.core.dependencies import get_quota_engine
from virl.quota.engine import QuotaEngine
from virl.quota.store import current_month_key

router = APIRouter()


async def _require_membership(engine: QuotaEngine, workspace_id: str, user: AuthUser) -> None:
    # 404 rather than 403 so workspace ids cannot be enumerated
    if not await engine.store.is_member(workspace_id, user.user_id):
        raise HTTPException(status_code=404, detail="Workspace not found")


@router.get("/{workspace_id}", response_model=UsageSummaryResponse)
async def get_usage(
    workspace_id: str,
    user: AuthUser = Depends(require_auth),
    engine: QuotaEngine = Depends(get_quota_engine),
):
    """Account-wide spark usage for the month, plus this workspace's share."""
    await _require_membership(engine, workspace_id, user)
    summary = await engine.usage_summary(workspace_id)
    return UsageSummaryResponse(
        workspace_id=workspace_id,
        plan_tier=summary.plan_tier.value,
        spark_count=summary.spark_count,
        limit=limit_to_wire(summary.limit),
        remaining=limit_to_wire(summary.remaining),
        used_by_workspace=summary.used_by_workspace,
        usage_month=current_month_key(),
    )


@router.get("/{workspace_id}/check", response_model=QuotaDecisionResponse)
async def check_usage(
    workspace_id: str,
    user: AuthUser = Depends(require_auth),
    engine: QuotaEngine = Depends(get_quota_engine),
):
    """Whether one more spark may be spent. Does not record anything."""
    await _require_membership(engine, workspace_id, user)
    decision = await engine.check_allowed(workspace_id)
    return QuotaDecisionResponse(
        allowed=decision.allowed,
        current_usage=int(decision.current_usage),
        limit=limit_to_wire(decision.limit),
        message=decision.message,
    )
