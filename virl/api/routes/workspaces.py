"""Workspace routes: list, create (workspace quota) and add members (member quota)."""

import structlog
from fastapi import APIRouter, Depends, HTTPException

from virl.api.schemas.quota import (
    MemberAdd,
    MemberResponse,
    PlanLimitsResponse,
    WorkspaceCreate,
    WorkspaceResponse,
    limit_to_wire,
)
from virl.core.auth import AuthUser, require_auth
from virl.core.dependencies import get_quota_engine
from virl.core.exceptions import WorkspaceNotFoundError
from virl.quota.catalog import TIER_RANK, PlanTier
from virl.quota.engine import QuotaEngine
from virl.quota.store import WorkspaceRecord

logger = structlog.get_logger(__name__)

router = APIRouter()


def _to_response(engine: QuotaEngine, workspace: WorkspaceRecord) -> WorkspaceResponse:
    end = workspace.subscription_end_date
    return WorkspaceResponse(
        id=workspace.id,
        name=workspace.name,
        owner_id=workspace.owner_id,
        plan_tier=engine.tier_of(workspace).value,
        subscription_end_date=end.isoformat() if end else None,
        limits=PlanLimitsResponse.from_limits(engine.limits_of(workspace)),
    )


@router.get("", response_model=list[WorkspaceResponse])
async def list_workspaces(
    user: AuthUser = Depends(require_auth),
    engine: QuotaEngine = Depends(get_quota_engine),
):
    """Workspaces owned by the caller, with resolved tier and effective limits."""
    owned = await engine.store.list_owned_workspaces(user.user_id)
    return [_to_response(engine, w) for w in owned]


@router.post("", response_model=WorkspaceResponse, status_code=201)
async def create_workspace(
    body: WorkspaceCreate,
    user: AuthUser = Depends(require_auth),
    engine: QuotaEngine = Depends(get_quota_engine),
):
    """Create a workspace if the account's workspace allowance permits.

    The new workspace inherits the account's highest active tier together
    with the end date of the workspace carrying it.
    """
    decision = await engine.check_workspace_capacity(user.user_id)
    if not decision.allowed:
        raise HTTPException(status_code=403, detail=decision.message)

    owned = await engine.store.list_owned_workspaces(user.user_id)
    best_tier, best_end = PlanTier.BASIC, None
    for workspace in owned:
        tier = engine.tier_of(workspace)
        if TIER_RANK[tier] > TIER_RANK[best_tier]:
            best_tier, best_end = tier, workspace.subscription_end_date

    created = await engine.store.create_workspace(
        owner_id=user.user_id,
        name=body.name,
        plan_tier=best_tier.value,
        subscription_end_date=best_end,
    )
    logger.info("workspace_created", workspace_id=created.id, owner_id=user.user_id, plan_tier=best_tier.value)
    return _to_response(engine, created)


@router.post("/{workspace_id}/members", response_model=MemberResponse, status_code=201)
async def add_member(
    workspace_id: str,
    body: MemberAdd,
    user: AuthUser = Depends(require_auth),
    engine: QuotaEngine = Depends(get_quota_engine),
):
    """Add a member to a workspace the caller owns, within the member allowance."""
    workspace = await engine.store.get_workspace(workspace_id)
    if workspace is None:
        raise HTTPException(status_code=404, detail="Workspace not found")
    if workspace.owner_id != user.user_id:
        raise HTTPException(status_code=403, detail="Only the workspace owner can add members")

    try:
        decision = await engine.check_member_capacity(workspace_id)
    except WorkspaceNotFoundError:
        raise HTTPException(status_code=404, detail="Workspace not found")
    if not decision.allowed:
        raise HTTPException(status_code=403, detail=decision.message)

    added = await engine.store.add_member(workspace_id, body.user_id, body.role)
    if not added:
        raise HTTPException(status_code=409, detail="User is already a member of this workspace")

    logger.info("member_added", workspace_id=workspace_id, user_id=body.user_id, role=body.role)
    return MemberResponse(
        workspace_id=workspace_id,
        user_id=body.user_id,
        role=body.role,
        member_count=int(decision.current_usage) + 1,
        member_limit=limit_to_wire(decision.limit),
    )
