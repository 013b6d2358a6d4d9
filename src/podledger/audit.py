"""Append-only audit trail."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

from podledger.clock import Clock, as_utc, utcnow
from podledger.exceptions import ValidationError
from podledger.protocols import AuditLogRepository
from podledger.types import AuditFilters, AuditPage

logger = logging.getLogger(__name__)


class AuditLog:
    """Durable, queryable history of every significant ledger event.

    The public surface is ``append`` and the read methods; there is no
    way to change or remove an entry once written.
    """

    def __init__(
        self,
        repository: AuditLogRepository,
        *,
        max_page_size: int = 500,
        clock: Clock = utcnow,
    ) -> None:
        self.repository = repository
        self.max_page_size = max_page_size
        self._clock = clock

    async def append(
        self,
        action: str,
        entity_type: str,
        entity_id: str,
        performed_by: str,
        metadata: dict[str, Any] | None = None,
    ) -> Any:
        """Record one event. ``created_at`` is always the server clock."""
        fields = {
            "action": action,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "performed_by": performed_by,
        }
        missing = [
            name
            for name, value in fields.items()
            if not isinstance(value, str) or not value.strip()
        ]
        if missing:
            raise ValidationError(
                f"Missing required audit fields: {', '.join(missing)}",
                fields=missing,
            )
        if metadata is not None and not isinstance(metadata, dict):
            raise ValidationError("Audit metadata must be an object")

        entry = await self.repository.add(
            action=str(action).strip(),
            entity_type=str(entity_type).strip(),
            entity_id=entity_id,
            performed_by=performed_by,
            metadata=dict(metadata or {}),
            created_at=self._clock(),
        )
        logger.debug(
            "Audit %s on %s %s by %s",
            action,
            entity_type,
            entity_id,
            performed_by,
        )
        return entry

    async def query(self, filters: AuditFilters | None = None) -> AuditPage:
        """Matching entries, newest first, one page at a time."""
        filters = filters or AuditFilters()
        if filters.offset < 0 or filters.limit < 1:
            raise ValidationError("offset must be >= 0 and limit >= 1")
        filters = replace(
            filters,
            since=as_utc(filters.since) if filters.since is not None else None,
            until=as_utc(filters.until) if filters.until is not None else None,
        )
        if (
            filters.since is not None
            and filters.until is not None
            and filters.since > filters.until
        ):
            raise ValidationError("since must not be later than until")
        if filters.limit > self.max_page_size:
            filters = replace(filters, limit=self.max_page_size)

        entries, total = await self.repository.query(filters)
        return AuditPage(
            entries=entries,
            total=total,
            offset=filters.offset,
            limit=filters.limit,
        )

    async def history(self, entity_id: str) -> list[Any]:
        """Every entry for one entity, oldest first."""
        return await self.repository.list_for_entity(entity_id)
