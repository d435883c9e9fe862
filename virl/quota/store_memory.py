"""InMemoryUsageStore: deterministic test double for the UsageStore protocol.

Holds workspaces, membership and monthly counters in plain dicts. Every
method is a coroutine so it can stand in for SqlUsageStore anywhere.
"""

import dataclasses
import uuid
from datetime import datetime
from typing import Any

from virl.quota.limits import OVERRIDE_COLUMNS, LimitOverrides
from virl.quota.store import WorkspaceRecord

_COLUMN_TO_OVERRIDE = {column: field for field, column in OVERRIDE_COLUMNS.items()}


class InMemoryUsageStore:
    def __init__(self):
        self.workspaces: dict[str, WorkspaceRecord] = {}
        self.usage: dict[tuple[str, str], int] = {}
        self.members: dict[str, dict[str, str]] = {}  # workspace_id -> {user_id: role}
        self.history: list[dict[str, Any]] = []
        self._order: list[str] = []

    # ---------- seeding helpers (tests) ----------

    def add_workspace(
        self,
        owner_id: str,
        plan_tier: str = "basic",
        subscription_end_date: datetime | None = None,
        overrides: LimitOverrides | None = None,
        workspace_id: str | None = None,
        name: str = "Workspace",
    ) -> WorkspaceRecord:
        record = WorkspaceRecord(
            id=workspace_id or str(uuid.uuid4()),
            owner_id=owner_id,
            name=name,
            plan_tier=plan_tier,
            subscription_end_date=subscription_end_date,
            overrides=overrides or LimitOverrides(),
        )
        self.workspaces[record.id] = record
        self._order.append(record.id)
        self.members.setdefault(record.id, {})[owner_id] = "owner"
        return record

    def set_sparks(self, workspace_id: str, usage_month: str, count: int) -> None:
        self.usage[(workspace_id, usage_month)] = count

    # ---------- UsageStore ----------

    async def get_workspace(self, workspace_id: str) -> WorkspaceRecord | None:
        return self.workspaces.get(workspace_id)

    async def list_owned_workspaces(self, owner_id: str) -> list[WorkspaceRecord]:
        return [self.workspaces[i] for i in self._order if self.workspaces[i].owner_id == owner_id]

    async def get_spark_counts(self, workspace_ids: list[str], usage_month: str) -> dict[str, int]:
        return {
            ws_id: self.usage[(ws_id, usage_month)]
            for ws_id in workspace_ids
            if (ws_id, usage_month) in self.usage
        }

    async def increment_sparks(self, workspace_id: str, usage_month: str) -> int:
        key = (workspace_id, usage_month)
        self.usage[key] = self.usage.get(key, 0) + 1
        return self.usage[key]

    async def count_members(self, workspace_id: str) -> int:
        return len(self.members.get(workspace_id, {}))

    async def is_member(self, workspace_id: str, user_id: str) -> bool:
        return user_id in self.members.get(workspace_id, {})

    async def add_member(self, workspace_id: str, user_id: str, role: str = "member") -> bool:
        roster = self.members.setdefault(workspace_id, {})
        if user_id in roster:
            return False
        roster[user_id] = role
        return True

    async def find_acting_workspace(self, user_id: str) -> str | None:
        for ws_id in self._order:
            if self.workspaces[ws_id].owner_id == user_id:
                return ws_id
        for ws_id in self._order:
            if user_id in self.members.get(ws_id, {}):
                return ws_id
        return None

    async def create_workspace(
        self,
        owner_id: str,
        name: str,
        plan_tier: str,
        subscription_end_date: datetime | None,
    ) -> WorkspaceRecord:
        return self.add_workspace(
            owner_id,
            plan_tier=plan_tier,
            subscription_end_date=subscription_end_date,
            name=name,
        )

    async def create_starter_workspace(
        self,
        workspace_id: str,
        owner_id: str,
        name: str,
        plan_tier: str,
    ) -> WorkspaceRecord | None:
        if workspace_id in self.workspaces:
            return None
        return self.add_workspace(owner_id, plan_tier=plan_tier, workspace_id=workspace_id, name=name)

    async def update_owned_workspaces(self, owner_id: str, values: dict[str, Any]) -> list[WorkspaceRecord]:
        updated = []
        for record in await self.list_owned_workspaces(owner_id):
            changes: dict[str, Any] = {}
            override_changes: dict[str, Any] = {}
            for column, value in values.items():
                if column in _COLUMN_TO_OVERRIDE:
                    override_changes[_COLUMN_TO_OVERRIDE[column]] = value
                else:
                    changes[column] = value
            if override_changes:
                changes["overrides"] = dataclasses.replace(record.overrides, **override_changes)
            new_record = dataclasses.replace(record, **changes)
            self.workspaces[record.id] = new_record
            updated.append(new_record)
        return updated

    async def record_subscription_change(self, **entry: Any) -> bool:
        transaction_id = entry.get("transaction_id")
        if transaction_id is not None and any(h.get("transaction_id") == transaction_id for h in self.history):
            return False
        self.history.append(entry)
        return True
