"""Billing routes: payment verification and paid-tier activation."""

from typing import Literal

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from virl.core.auth import AuthUser, require_auth
from virl.core.config import get_settings
from virl.core.dependencies import get_usage_store
from virl.core.exceptions import PaymentAlreadyProcessedError, PaymentVerificationError
from virl.quota.catalog import PlanTier
from virl.quota.store import UsageStore
from virl.services.plans import apply_verified_payment

logger = structlog.get_logger(__name__)

router = APIRouter()


# ── Request / Response schemas ──────────────────────────────────────


class VerifyPaymentRequest(BaseModel):
    order_id: str
    payment_id: str
    signature: str
    # custom is granted by an admin, never bought at the pro price
    plan_tier: Literal["pro"] = "pro"


class VerifyPaymentResponse(BaseModel):
    success: bool
    plan_tier: str
    subscription_end_date: str | None


# ── Routes ──────────────────────────────────────────────────────────


@router.post("/billing/verify", response_model=VerifyPaymentResponse)
async def verify_payment(
    body: VerifyPaymentRequest,
    user: AuthUser = Depends(require_auth),
    store: UsageStore = Depends(get_usage_store),
):
    """Verify a gateway payment signature and activate the paid tier."""
    settings = get_settings()
    if not (settings.payment_key_id and settings.payment_key_secret):
        logger.error("payment_keys_missing")
        raise HTTPException(status_code=503, detail="Payments are not configured")

    try:
        end = await apply_verified_payment(
            store,
            user.user_id,
            PlanTier(body.plan_tier),
            key_id=settings.payment_key_id,
            key_secret=settings.payment_key_secret,
            order_id=body.order_id,
            payment_id=body.payment_id,
            signature=body.signature,
            amount=settings.pro_price_inr,
            period_days=settings.subscription_period_days,
        )
    except PaymentVerificationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except PaymentAlreadyProcessedError as exc:
        raise HTTPException(status_code=409, detail=str(exc))

    return VerifyPaymentResponse(
        success=True,
        plan_tier=body.plan_tier,
        subscription_end_date=end.isoformat() if end else None,
    )
