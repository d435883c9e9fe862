import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Liveness check.

    Returns 503 once SIGTERM has been received so the load balancer drains us.
    """
    if getattr(request.app.state, "shutting_down", False):
        return JSONResponse(
            status_code=503,
            content={"status": "shutting_down", "service": "virl-quota"},
        )
    return {"status": "healthy", "service": "virl-quota"}


@router.get("/ready")
async def readiness_check():
    """Readiness check: the database must answer."""
    checks = {"database": False}

    try:
        from virl.db.session import ping_db

        checks["database"] = await ping_db()
    except Exception as e:
        logger.error(f"Database health check failed: {e}")

    ready = all(checks.values())
    return JSONResponse(
        status_code=200 if ready else 503,
        content={"status": "ready" if ready else "degraded", "checks": checks},
    )
