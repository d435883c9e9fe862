"""Admin API routes: account plan changes and per-workspace limit overrides."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException

from virl.api.schemas.quota import (
    AccountDetail,
    AdminWorkspaceDetail,
    LimitOverridesUpdate,
    OverridesResponse,
    PlanChange,
    PlanLimitsResponse,
    limit_to_wire,
)
from virl.core.auth import AuthUser, require_admin
from virl.core.config import get_settings
from virl.core.dependencies import get_quota_engine
from virl.core.exceptions import InvalidOverrideError
from virl.quota.catalog import PlanTier, Resource
from virl.quota.engine import QuotaEngine
from virl.services.plans import change_plan, update_limit_overrides

router = APIRouter(prefix="/admin", tags=["admin"])


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


async def _account_detail(engine: QuotaEngine, owner_id: str) -> AccountDetail:
    owned = await engine.store.list_owned_workspaces(owner_id)
    if not owned:
        raise HTTPException(status_code=404, detail="Account owns no workspaces")

    details = [
        AdminWorkspaceDetail(
            id=w.id,
            name=w.name,
            plan_tier=engine.tier_of(w).value,
            subscription_end_date=_iso(w.subscription_end_date),
            overrides=OverridesResponse(
                storage_bytes=w.overrides.storage_bytes,
                members=w.overrides.members,
                workspaces=w.overrides.workspaces,
                sparks_per_month=w.overrides.sparks_per_month,
            ),
            effective_limits=PlanLimitsResponse.from_limits(engine.limits_of(w)),
        )
        for w in owned
    ]
    return AccountDetail(
        owner_id=owner_id,
        workspaces=details,
        global_spark_limit=limit_to_wire(await engine.global_ceiling(owner_id, Resource.SPARKS)),
        global_spark_usage=await engine.global_usage(owner_id),
    )


# ---------- Accounts ----------


@router.get("/accounts/{owner_id}", response_model=AccountDetail)
async def get_account(
    owner_id: str,
    _: AuthUser = Depends(require_admin),
    engine: QuotaEngine = Depends(get_quota_engine),
):
    """Stored overrides, resolved tier and effective limits for each owned workspace."""
    return await _account_detail(engine, owner_id)


@router.put("/accounts/{owner_id}/plan", response_model=AccountDetail)
async def set_account_plan(
    owner_id: str,
    body: PlanChange,
    _: AuthUser = Depends(require_admin),
    engine: QuotaEngine = Depends(get_quota_engine),
):
    """Move every workspace the account owns onto a tier."""
    updated = await change_plan(
        engine.store,
        owner_id,
        PlanTier(body.plan_tier),
        get_settings().subscription_period_days,
    )
    if not updated:
        raise HTTPException(status_code=404, detail="Account owns no workspaces")
    return await _account_detail(engine, owner_id)


@router.patch("/accounts/{owner_id}/limits", response_model=AccountDetail)
async def set_account_limits(
    owner_id: str,
    body: LimitOverridesUpdate,
    _: AuthUser = Depends(require_admin),
    engine: QuotaEngine = Depends(get_quota_engine),
):
    """Partial override update: omitted fields untouched, null resets to the tier default."""
    try:
        updated = await update_limit_overrides(engine.store, owner_id, body.model_dump(exclude_unset=True))
    except InvalidOverrideError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if not updated:
        raise HTTPException(status_code=404, detail="Account owns no workspaces")
    return await _account_detail(engine, owner_id)
