"""SqlUsageStore: UsageStore backed by PostgreSQL through SQLAlchemy asyncio."""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from virl.db.models.monthly_usage import MonthlyUsage
from virl.db.models.subscription_history import SubscriptionHistory
from virl.db.models.workspace import Workspace
from virl.db.models.workspace_member import WorkspaceMember
from virl.quota.limits import LimitOverrides
from virl.quota.store import WorkspaceRecord


def _to_record(row: Workspace) -> WorkspaceRecord:
    return WorkspaceRecord(
        id=row.id,
        owner_id=row.owner_id,
        name=row.name,
        plan_tier=row.plan_tier,
        subscription_end_date=row.subscription_end_date,
        overrides=LimitOverrides.from_columns(row),
    )


class SqlUsageStore:
    """Each call opens its own session; no state is held between calls."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._factory = session_factory

    async def get_workspace(self, workspace_id: str) -> WorkspaceRecord | None:
        async with self._factory() as session:
            result = await session.execute(select(Workspace).where(Workspace.id == workspace_id))
            row = result.scalar_one_or_none()
            return _to_record(row) if row is not None else None

    async def list_owned_workspaces(self, owner_id: str) -> list[WorkspaceRecord]:
        async with self._factory() as session:
            result = await session.execute(
                select(Workspace).where(Workspace.owner_id == owner_id).order_by(Workspace.created_at)
            )
            return [_to_record(row) for row in result.scalars().all()]

    async def get_spark_counts(self, workspace_ids: list[str], usage_month: str) -> dict[str, int]:
        if not workspace_ids:
            return {}
        async with self._factory() as session:
            result = await session.execute(
                select(MonthlyUsage.workspace_id, MonthlyUsage.spark_count).where(
                    MonthlyUsage.workspace_id.in_(workspace_ids),
                    MonthlyUsage.usage_month == usage_month,
                )
            )
            return {row.workspace_id: row.spark_count or 0 for row in result.all()}

    async def increment_sparks(self, workspace_id: str, usage_month: str) -> int:
        now = datetime.now(timezone.utc)
        stmt = (
            insert(MonthlyUsage)
            .values(workspace_id=workspace_id, usage_month=usage_month, spark_count=1, updated_at=now)
            .on_conflict_do_update(
                index_elements=["workspace_id", "usage_month"],
                set_={
                    "spark_count": MonthlyUsage.spark_count + 1,
                    "updated_at": now,
                },
            )
            .returning(MonthlyUsage.spark_count)
        )
        async with self._factory() as session:
            result = await session.execute(stmt)
            count = result.scalar_one()
            await session.commit()
            return count

    async def count_members(self, workspace_id: str) -> int:
        async with self._factory() as session:
            result = await session.execute(
                select(func.count(WorkspaceMember.id)).where(WorkspaceMember.workspace_id == workspace_id)
            )
            return result.scalar_one()

    async def is_member(self, workspace_id: str, user_id: str) -> bool:
        async with self._factory() as session:
            result = await session.execute(
                select(WorkspaceMember.id).where(
                    WorkspaceMember.workspace_id == workspace_id,
                    WorkspaceMember.user_id == user_id,
                )
            )
            return result.first() is not None

    async def add_member(self, workspace_id: str, user_id: str, role: str = "member") -> bool:
        stmt = (
            insert(WorkspaceMember)
            .values(workspace_id=workspace_id, user_id=user_id, role=role)
            .on_conflict_do_nothing(index_elements=["workspace_id", "user_id"])
            .returning(WorkspaceMember.id)
        )
        async with self._factory() as session:
            result = await session.execute(stmt)
            inserted = result.first() is not None
            await session.commit()
            return inserted

    async def find_acting_workspace(self, user_id: str) -> str | None:
        async with self._factory() as session:
            owned = await session.execute(
                select(Workspace.id).where(Workspace.owner_id == user_id).order_by(Workspace.created_at).limit(1)
            )
            workspace_id = owned.scalar_one_or_none()
            if workspace_id is not None:
                return workspace_id

            member = await session.execute(
                select(WorkspaceMember.workspace_id)
                .where(WorkspaceMember.user_id == user_id)
                .order_by(WorkspaceMember.created_at)
                .limit(1)
            )
            return member.scalar_one_or_none()

    async def create_workspace(
        self,
        owner_id: str,
        name: str,
        plan_tier: str,
        subscription_end_date: datetime | None,
    ) -> WorkspaceRecord:
        async with self._factory() as session:
            workspace = Workspace(
                owner_id=owner_id,
                name=name,
                plan_tier=plan_tier,
                subscription_end_date=subscription_end_date,
            )
            session.add(workspace)
            await session.flush()
            session.add(WorkspaceMember(workspace_id=workspace.id, user_id=owner_id, role="owner"))
            await session.commit()
            await session.refresh(workspace)
            return _to_record(workspace)

    async def create_starter_workspace(
        self,
        workspace_id: str,
        owner_id: str,
        name: str,
        plan_tier: str,
    ) -> WorkspaceRecord | None:
        stmt = (
            insert(Workspace)
            .values(id=workspace_id, owner_id=owner_id, name=name, plan_tier=plan_tier)
            .on_conflict_do_nothing(index_elements=["id"])
            .returning(Workspace.id)
        )
        async with self._factory() as session:
            result = await session.execute(stmt)
            if result.first() is None:
                await session.rollback()
                return None
            await session.execute(
                insert(WorkspaceMember)
                .values(workspace_id=workspace_id, user_id=owner_id, role="owner")
                .on_conflict_do_nothing(index_elements=["workspace_id", "user_id"])
            )
            await session.commit()
        return WorkspaceRecord(id=workspace_id, owner_id=owner_id, name=name, plan_tier=plan_tier)

    async def update_owned_workspaces(self, owner_id: str, values: dict[str, Any]) -> list[WorkspaceRecord]:
        async with self._factory() as session:
            if values:
                await session.execute(update(Workspace).where(Workspace.owner_id == owner_id).values(**values))
                await session.commit()
            result = await session.execute(
                select(Workspace).where(Workspace.owner_id == owner_id).order_by(Workspace.created_at)
            )
            return [_to_record(row) for row in result.scalars().all()]

    async def record_subscription_change(self, **entry: Any) -> bool:
        async with self._factory() as session:
            try:
                session.add(SubscriptionHistory(**entry))
                await session.commit()
                return True
            except IntegrityError:
                # transaction_id already recorded
                await session.rollback()
                return False
