"""Metered AI generation: quota gate, LLM gateway call, usage ledger.

Flow for one request:
1. Resolve the acting workspace (first owned, else first membership)
2. Ask the quota engine whether a spark may be spent
3. Call the LLM gateway
4. Record exactly one spark, only after the gateway call succeeded

If the request dies between 2 and 4, nothing is recorded: an aborted
generation never counts against the account.
"""

from dataclasses import dataclass

import httpx
import structlog

from virl.core.config import get_settings
from virl.core.exceptions import GenerationFailedError, VirlError
from virl.quota.engine import QuotaDecision, QuotaEngine

logger = structlog.get_logger(__name__)

SYSTEM_PROMPT = (
    "You are Vixi, an AI social media strategist. Help the user plan posts, "
    "scripts and content ideas for Instagram, YouTube, Facebook and LinkedIn. "
    "Answer in the JSON structure the user's prompt asks for."
)


@dataclass(frozen=True)
class GenerationResult:
    content: str
    workspace_id: str
    spark_count: int  # account-wide usage after this generation
    limit: float


class QuotaDeniedError(VirlError):
    """Raised by run_metered_generation when the gate refuses a spark."""

    def __init__(self, decision: QuotaDecision):
        self.decision = decision
        super().__init__(decision.message or "Vixi Spark limit reached for this month.")


class LLMGatewayClient:
    """Client for an OpenAI-compatible chat completions endpoint."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        """Initialize the gateway client.

        Args:
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self.settings = get_settings()
        self._transport = transport

    async def complete(self, messages: list[dict], context: dict | None = None) -> str:
        """Run one chat completion and return the assistant message text.

        Raises:
            GenerationFailedError: if the gateway is unconfigured, unreachable or returns an error
        """
        if not self.settings.llm_api_key:
            raise GenerationFailedError("LLM gateway not configured")

        system = SYSTEM_PROMPT
        if context:
            lines = [f"- {key}: {value}" for key, value in context.items()]
            system = f"{SYSTEM_PROMPT}\n\nCURRENT CONTEXT:\n" + "\n".join(lines)

        payload = {
            "model": self.settings.llm_model,
            "messages": [{"role": "system", "content": system}, *messages],
        }

        try:
            async with httpx.AsyncClient(
                base_url=self.settings.llm_base_url,
                timeout=self.settings.llm_timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    "/chat/completions",
                    json=payload,
                    headers={"Authorization": f"Bearer {self.settings.llm_api_key}"},
                )
        except httpx.HTTPError as exc:
            raise GenerationFailedError(f"LLM gateway unreachable: {exc}") from exc

        if response.status_code != 200:
            raise GenerationFailedError(f"LLM gateway returned {response.status_code}: {response.text[:200]}")

        try:
            return response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise GenerationFailedError("LLM gateway returned an unexpected payload") from exc


async def run_metered_generation(
    engine: QuotaEngine,
    client: LLMGatewayClient,
    workspace_id: str,
    messages: list[dict],
    context: dict | None = None,
) -> GenerationResult:
    """Gate, generate, then record one spark.

    Raises:
        QuotaDeniedError: when the account has no sparks left this month
        GenerationFailedError: when the gateway call fails (nothing recorded)
    """
    decision = await engine.check_allowed(workspace_id)
    if not decision.allowed:
        raise QuotaDeniedError(decision)

    content = await client.complete(messages, context)

    spark_count = await engine.increment(workspace_id)
    logger.info("generation_completed", workspace_id=workspace_id, spark_count=spark_count)
    return GenerationResult(
        content=content,
        workspace_id=workspace_id,
        spark_count=spark_count,
        limit=decision.limit,
    )
