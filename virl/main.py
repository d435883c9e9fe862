"""Virl quota service: FastAPI application entry point."""

import signal
import uuid
from contextlib import asynccontextmanager

# configure_structlog must run before the other app imports: structlog caches
# the processor chain on first use.
from virl.core.logging import configure_structlog
from virl.core.config import get_settings as _get_settings_early

_early_settings = _get_settings_early()
configure_structlog(
    log_level="DEBUG" if _early_settings.debug else "INFO",
    json_logs=not _early_settings.debug,
)

import structlog

from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from virl.api.routes import api_router
from virl.core.config import Settings, get_settings
from virl.db import close_db, init_db
from virl.middleware.correlation import get_correlation_id, setup_correlation_middleware

logger = structlog.get_logger(__name__)


def _missing_integrations(settings: Settings) -> dict[str, str]:
    """Optional integrations left unconfigured, mapped to what stops working."""
    missing = {}
    if not (settings.payment_key_id and settings.payment_key_secret):
        missing["payment_keys"] = "POST /api/billing/verify returns 503"
    if not settings.llm_api_key:
        missing["llm_api_key"] = "POST /api/generate returns 502"
    if not settings.jwt_secret:
        missing["jwt_secret"] = "every authenticated route returns 401"
    return missing


def _drain_on_sigterm(app: FastAPI) -> None:
    """Flip app.state.shutting_down so /api/health answers 503 while draining."""

    def handler(signum, frame):
        app.state.shutting_down = True
        logger.info("sigterm_received", action="health_503_until_exit")

    app.state.shutting_down = False
    signal.signal(signal.SIGTERM, handler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    _drain_on_sigterm(app)
    logger.info("startup_begin", app_name=settings.app_name, debug=settings.debug)

    await init_db(settings)
    for name, effect in _missing_integrations(settings).items():
        logger.warning("integration_unconfigured", setting=name, effect=effect)

    yield

    logger.info("shutdown_begin")
    await close_db()


def _error_response(request: Request, status_code: int, detail, event: str, **log_fields) -> JSONResponse:
    """Log under a fresh debug_id and return only detail + debug_id to the client."""
    debug_id = str(uuid.uuid4())
    logger.error(
        event,
        status_code=status_code,
        debug_id=debug_id,
        correlation_id=get_correlation_id(),
        path=request.url.path,
        method=request.method,
        user_id=getattr(request.state, "user_id", None),
        **log_fields,
    )
    return JSONResponse(status_code=status_code, content={"detail": detail, "debug_id": debug_id})


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _error_response(request, exc.status_code, exc.detail, "http_exception")


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    return _error_response(
        request,
        500,
        "Internal server error",
        "unhandled_exception",
        error_type=type(exc).__name__,
        exc_info=exc,
    )


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Plan catalog, usage metering and quota enforcement for Virl workspaces",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    )
    setup_correlation_middleware(app)

    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("virl.main:app", host="0.0.0.0", port=8000)
