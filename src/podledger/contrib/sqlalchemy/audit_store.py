"""SQLAlchemy append-only audit store."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from podledger.contrib.sqlalchemy.models import AuditLogModel
from podledger.types import AuditFilters


class SQLAlchemyAuditLogStore:
    """Persist audit entries in a SQLAlchemy table. Inserts only."""

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        self.session_factory = session_factory

    async def add(
        self,
        *,
        action: str,
        entity_type: str,
        entity_id: str,
        performed_by: str,
        metadata: dict[str, Any],
        created_at: datetime,
    ) -> AuditLogModel:
        entry = AuditLogModel(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            performed_by=performed_by,
            metadata_=metadata,
            created_at=created_at,
        )
        async with self.session_factory() as session:
            session.add(entry)
            await session.commit()
            await session.refresh(entry)
        return entry

    async def query(self, filters: AuditFilters) -> tuple[list[AuditLogModel], int]:
        stmt = select(AuditLogModel)
        if filters.entity_id is not None:
            stmt = stmt.where(AuditLogModel.entity_id == filters.entity_id)
        if filters.entity_type is not None:
            stmt = stmt.where(AuditLogModel.entity_type == filters.entity_type)
        if filters.performed_by is not None:
            stmt = stmt.where(AuditLogModel.performed_by == filters.performed_by)
        if filters.action is not None:
            stmt = stmt.where(AuditLogModel.action == filters.action)
        if filters.since is not None:
            stmt = stmt.where(AuditLogModel.created_at >= filters.since)
        if filters.until is not None:
            stmt = stmt.where(AuditLogModel.created_at <= filters.until)

        async with self.session_factory() as session:
            total = await session.scalar(
                select(func.count()).select_from(stmt.subquery())
            )
            result = await session.execute(
                stmt.order_by(
                    AuditLogModel.created_at.desc(), AuditLogModel.id.desc()
                )
                .offset(filters.offset)
                .limit(filters.limit)
            )
            return list(result.scalars().all()), int(total or 0)

    async def list_for_entity(self, entity_id: str) -> list[AuditLogModel]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(AuditLogModel)
                .where(AuditLogModel.entity_id == entity_id)
                .order_by(AuditLogModel.created_at, AuditLogModel.id)
            )
            return list(result.scalars().all())
