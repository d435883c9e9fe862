"""UsageStore Protocol: the storage collaborator behind the quota engine.

The engine only ever talks to storage through this interface. Two
implementations ship with the package:
- SqlUsageStore: SQLAlchemy/PostgreSQL, used by the running service
- InMemoryUsageStore: deterministic test double
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol, runtime_checkable

from virl.quota.limits import LimitOverrides


@dataclass(frozen=True)
class WorkspaceRecord:
    """Snapshot of a workspace row as the engine needs it."""

    id: str
    owner_id: str
    name: str = ""
    plan_tier: str = "basic"
    subscription_end_date: datetime | None = None
    overrides: LimitOverrides = field(default_factory=LimitOverrides)


def current_month_key(now: datetime | None = None) -> str:
    """Return the first day of the current UTC month as YYYY-MM-01."""
    now = now or datetime.now(timezone.utc)
    return f"{now.year:04d}-{now.month:02d}-01"


@runtime_checkable
class UsageStore(Protocol):
    async def get_workspace(self, workspace_id: str) -> WorkspaceRecord | None:
        """Select one workspace by id."""
        ...

    async def list_owned_workspaces(self, owner_id: str) -> list[WorkspaceRecord]:
        """Select every workspace owned by an account."""
        ...

    async def get_spark_counts(self, workspace_ids: list[str], usage_month: str) -> dict[str, int]:
        """Return {workspace_id: spark_count} for rows that exist in usage_month."""
        ...

    async def increment_sparks(self, workspace_id: str, usage_month: str) -> int:
        """Atomically add one spark to (workspace, month), creating the row at 1.

        Returns:
            The workspace's new counter value for the month
        """
        ...

    async def count_members(self, workspace_id: str) -> int:
        ...

    async def is_member(self, workspace_id: str, user_id: str) -> bool:
        ...

    async def add_member(self, workspace_id: str, user_id: str, role: str = "member") -> bool:
        """Insert a membership. Returns False if the user is already a member."""
        ...

    async def find_acting_workspace(self, user_id: str) -> str | None:
        """First owned workspace id, else first workspace the user belongs to."""
        ...

    async def create_workspace(
        self,
        owner_id: str,
        name: str,
        plan_tier: str,
        subscription_end_date: datetime | None,
    ) -> WorkspaceRecord:
        """Insert a workspace and its owner membership."""
        ...

    async def create_starter_workspace(
        self,
        workspace_id: str,
        owner_id: str,
        name: str,
        plan_tier: str,
    ) -> WorkspaceRecord | None:
        """Insert a workspace with a caller-chosen id unless that id exists.

        Returns:
            The new workspace, or None if the id was already taken
        """
        ...

    async def update_owned_workspaces(self, owner_id: str, values: dict[str, Any]) -> list[WorkspaceRecord]:
        """Write column values onto every workspace the account owns.

        Returns:
            The updated workspaces (empty if the account owns none)
        """
        ...

    async def record_subscription_change(self, **entry: Any) -> bool:
        """Append a row to the subscription history.

        Returns:
            False if a row with the same transaction_id already exists
        """
        ...
