"""Public plan catalog."""

from fastapi import APIRouter

from virl.api.schemas.quota import PlanLimitsResponse, PlanResponse
from virl.quota.catalog import PlanTier, default_limits

router = APIRouter()


@router.get("/plans", response_model=list[PlanResponse])
async def list_plans():
    """Default limits for every tier, lowest first."""
    return [
        PlanResponse(tier=tier.value, limits=PlanLimitsResponse.from_limits(default_limits(tier)))
        for tier in PlanTier
    ]
