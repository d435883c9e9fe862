"""Account provisioning on first login.

Creates a basic-tier starter workspace (with the owner membership) for an
account that owns no workspace yet. Repeat calls are no-ops.

The starter workspace id is derived from the account id, so two first
requests racing each other insert the same primary key and only one wins.
"""

import uuid

import structlog

from virl.quota.catalog import PlanTier
from virl.quota.store import UsageStore, WorkspaceRecord

logger = structlog.get_logger(__name__)

_STARTER_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "virl:starter-workspace")


def starter_workspace_id(user_id: str) -> str:
    return str(uuid.uuid5(_STARTER_NAMESPACE, user_id))


async def provision_account_on_first_login(
    user_id: str,
    jwt_claims: dict,
    store: UsageStore,
) -> WorkspaceRecord | None:
    """Provision a starter workspace for a new account.

    Args:
        user_id: Account id from the JWT `sub` claim
        jwt_claims: Token claims; `user_metadata.workspace_name` names the workspace
        store: Storage backend

    Returns:
        The created workspace, or None if the account already owns one
    """
    if await store.list_owned_workspaces(user_id):
        return None

    user_metadata = jwt_claims.get("user_metadata") or {}
    name = user_metadata.get("workspace_name") or "My Workspace"

    workspace = await store.create_starter_workspace(
        workspace_id=starter_workspace_id(user_id),
        owner_id=user_id,
        name=name,
        plan_tier=PlanTier.BASIC.value,
    )
    if workspace is None:
        logger.debug("workspace_provision_skipped", user_id=user_id)
        return None

    logger.info("workspace_provisioned", user_id=user_id, workspace_id=workspace.id)
    return workspace
