"""Plan changes: admin adjustments, limit overrides and payment-verified upgrades.

Every change is applied to all workspaces an account owns, so the account
sees one consistent plan. Nothing here reads the stored tier back; reads go
through the quota engine's resolver.
"""

from datetime import datetime, timedelta, timezone

import razorpay
import structlog
from razorpay.errors import SignatureVerificationError

from virl.core.exceptions import PaymentAlreadyProcessedError, PaymentVerificationError
from virl.quota.catalog import PlanTier
from virl.quota.limits import OVERRIDE_COLUMNS, validate_overrides
from virl.quota.store import UsageStore, WorkspaceRecord

logger = structlog.get_logger(__name__)


def subscription_end_for(tier: PlanTier, period_days: int, now: datetime | None = None) -> datetime | None:
    """basic has no end date; paid tiers run for `period_days` from now."""
    if tier is PlanTier.BASIC:
        return None
    now = now or datetime.now(timezone.utc)
    return now + timedelta(days=period_days)


async def change_plan(
    store: UsageStore,
    owner_id: str,
    tier: PlanTier,
    period_days: int,
    now: datetime | None = None,
) -> list[WorkspaceRecord]:
    """Admin plan change across every workspace the account owns.

    Returns:
        The updated workspaces (empty when the account owns none)
    """
    now = now or datetime.now(timezone.utc)
    end = subscription_end_for(tier, period_days, now)

    owned = await store.list_owned_workspaces(owner_id)
    if not owned:
        logger.info("plan_change_skipped_no_workspaces", owner_id=owner_id, plan_tier=tier.value)
        return []

    updated = await store.update_owned_workspaces(
        owner_id,
        {"plan_tier": tier.value, "subscription_end_date": end},
    )
    await store.record_subscription_change(
        user_id=owner_id,
        plan_tier=tier.value,
        change_type="manual_adjustment",
        amount=None,
        currency="INR",
        payment_method="manual",
        transaction_id=f"admin_{int(now.timestamp() * 1000)}",
        period_start=now,
        period_end=end,
        details={"modified_by": "admin"},
    )
    logger.info("plan_changed", owner_id=owner_id, plan_tier=tier.value, workspaces=len(updated))
    return updated


async def update_limit_overrides(
    store: UsageStore,
    owner_id: str,
    overrides: dict[str, int | None],
) -> list[WorkspaceRecord]:
    """Write override fields onto every workspace the account owns.

    Only the keys present in `overrides` are written; a None value resets
    that resource to the tier default.

    Raises:
        InvalidOverrideError: for unknown fields or negative values
    """
    validate_overrides(overrides)
    values = {OVERRIDE_COLUMNS[field]: value for field, value in overrides.items()}

    updated = await store.update_owned_workspaces(owner_id, values)
    logger.info("limit_overrides_updated", owner_id=owner_id, fields=sorted(overrides), workspaces=len(updated))
    return updated


def verify_payment_signature(key_id: str, key_secret: str, order_id: str, payment_id: str, signature: str) -> bool:
    """Check the gateway's signature for an order/payment pair with its SDK."""
    client = razorpay.Client(auth=(key_id, key_secret))
    try:
        return bool(
            client.utility.verify_payment_signature({
                "razorpay_order_id": order_id,
                "razorpay_payment_id": payment_id,
                "razorpay_signature": signature,
            })
        )
    except SignatureVerificationError:
        return False


async def apply_verified_payment(
    store: UsageStore,
    owner_id: str,
    tier: PlanTier,
    *,
    key_id: str,
    key_secret: str,
    order_id: str,
    payment_id: str,
    signature: str,
    amount: float,
    period_days: int,
    now: datetime | None = None,
) -> datetime | None:
    """Verify a payment and upgrade the payer's workspaces.

    The history row is written before the upgrade. Its transaction id is
    unique, so a replayed payment stops there and changes nothing.

    Returns:
        The new subscription end date, or None if the account owns no workspace

    Raises:
        PaymentVerificationError: on a signature mismatch
        PaymentAlreadyProcessedError: if the payment id was already applied
    """
    if not verify_payment_signature(key_id, key_secret, order_id, payment_id, signature):
        logger.warning("payment_signature_invalid", owner_id=owner_id, order_id=order_id)
        raise PaymentVerificationError("Invalid signature")

    now = now or datetime.now(timezone.utc)
    end = subscription_end_for(tier, period_days, now)

    if not await store.list_owned_workspaces(owner_id):
        logger.warning("payment_verified_no_workspaces", owner_id=owner_id, order_id=order_id)
        return None

    recorded = await store.record_subscription_change(
        user_id=owner_id,
        plan_tier=tier.value,
        change_type="upgrade",
        amount=amount,
        currency="INR",
        payment_method="razorpay",
        transaction_id=payment_id,
        period_start=now,
        period_end=end,
        details={"order_id": order_id},
    )
    if not recorded:
        logger.warning("payment_replayed", owner_id=owner_id, order_id=order_id, payment_id=payment_id)
        raise PaymentAlreadyProcessedError(payment_id)

    await store.update_owned_workspaces(
        owner_id,
        {"plan_tier": tier.value, "subscription_end_date": end},
    )
    logger.info("payment_verified", owner_id=owner_id, plan_tier=tier.value, period_end=end.isoformat())
    return end
