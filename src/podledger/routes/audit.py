"""Audit log endpoints."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query

from podledger.config import PodLedgerConfig
from podledger.dependencies import get_account_id, get_config, get_ledger
from podledger.ledger import DeliveryLedger
from podledger.schemas import (
    AppendAuditRequest,
    AuditEntryResponse,
    AuditPageResponse,
)
from podledger.types import AuditFilters

router = APIRouter(tags=["audit"])


@router.post("/audit", response_model=AuditEntryResponse, status_code=201)
async def append_audit(
    body: AppendAuditRequest,
    account_id: str = Depends(get_account_id),
    ledger: DeliveryLedger = Depends(get_ledger),
) -> AuditEntryResponse:
    """Record a client-side event such as a label scan or a download."""
    entry = await ledger.append_audit(
        account_id,
        action=body.action,
        entity_type=body.entity_type,
        entity_id=body.entity_id,
        metadata=body.metadata,
    )
    return AuditEntryResponse.from_entry(entry)


@router.get("/audit", response_model=AuditPageResponse)
async def query_audit(
    entity_id: str | None = None,
    entity_type: str | None = None,
    performed_by: str | None = None,
    action: str | None = None,
    since: datetime | None = None,
    until: datetime | None = None,
    offset: int = Query(0, ge=0),
    limit: int | None = Query(None, ge=1),
    account_id: str = Depends(get_account_id),
    ledger: DeliveryLedger = Depends(get_ledger),
    config: PodLedgerConfig = Depends(get_config),
) -> AuditPageResponse:
    filters = AuditFilters(
        entity_id=entity_id,
        entity_type=entity_type,
        performed_by=performed_by,
        action=action,
        since=since,
        until=until,
        offset=offset,
        limit=limit or config.audit_default_page_size,
    )
    page = await ledger.query_audit(account_id, filters)
    return AuditPageResponse.from_page(page)
