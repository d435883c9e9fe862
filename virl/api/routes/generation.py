"""Metered AI generation route."""

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from virl.api.schemas.quota import limit_to_wire
from virl.core.auth import AuthUser, require_auth
from virl.core.dependencies import get_quota_engine
from virl.core.exceptions import GenerationFailedError
from virl.quota.engine import QuotaEngine
from virl.services.generation import LLMGatewayClient, QuotaDeniedError, run_metered_generation

logger = structlog.get_logger(__name__)

router = APIRouter()


class ChatMessage(BaseModel):
    role: str
    content: str


class GenerateRequest(BaseModel):
    messages: list[ChatMessage] = Field(min_length=1)
    context: dict[str, Any] | None = None


class GenerateResponse(BaseModel):
    content: str
    workspace_id: str
    spark_count: int
    limit: int  # -1 = unlimited


def get_llm_client() -> LLMGatewayClient:
    return LLMGatewayClient()


@router.post("/generate", response_model=GenerateResponse)
async def generate(
    body: GenerateRequest,
    user: AuthUser = Depends(require_auth),
    engine: QuotaEngine = Depends(get_quota_engine),
    client: LLMGatewayClient = Depends(get_llm_client),
):
    """Spend one Vixi Spark on an AI generation for the caller's acting workspace."""
    workspace_id = await engine.store.find_acting_workspace(user.user_id)
    if workspace_id is None:
        raise HTTPException(status_code=403, detail="No workspace found for this account")

    try:
        result = await run_metered_generation(
            engine,
            client,
            workspace_id,
            [m.model_dump() for m in body.messages],
            body.context,
        )
    except QuotaDeniedError as exc:
        raise HTTPException(status_code=403, detail=str(exc))
    except GenerationFailedError as exc:
        logger.warning("generation_failed", workspace_id=workspace_id, error=str(exc))
        raise HTTPException(status_code=502, detail="AI generation failed")

    return GenerateResponse(
        content=result.content,
        workspace_id=result.workspace_id,
        spark_count=result.spark_count,
        limit=limit_to_wire(result.limit),
    )
