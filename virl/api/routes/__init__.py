from fastapi import APIRouter

from virl.api.routes import admin, billing, generation, health, plans, usage, workspaces

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(plans.router, tags=["plans"])
api_router.include_router(usage.router, prefix="/usage", tags=["usage"])
api_router.include_router(workspaces.router, prefix="/workspaces", tags=["workspaces"])
api_router.include_router(admin.router, tags=["admin"])
api_router.include_router(billing.router, tags=["billing"])
api_router.include_router(generation.router, tags=["generation"])
