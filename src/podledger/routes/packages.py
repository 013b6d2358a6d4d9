"""Package endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from podledger.dependencies import get_account_id, get_ledger
from podledger.enums import PackageStatus
from podledger.ledger import DeliveryLedger
from podledger.schemas import (
    AuditEntryResponse,
    CreatePackageRequest,
    PackagePageResponse,
    PackageResponse,
    PodResponse,
    TransitionRequest,
    UpdatePackageRequest,
)

router = APIRouter(tags=["packages"])


@router.post("/packages", response_model=PackageResponse, status_code=201)
async def create_package(
    body: CreatePackageRequest,
    account_id: str = Depends(get_account_id),
    ledger: DeliveryLedger = Depends(get_ledger),
) -> PackageResponse:
    """Register a package; the receiver is notified when a channel is set up."""
    package = await ledger.create_package(
        account_id,
        receiver_email=body.receiver_email,
        items=[item.model_dump() for item in body.items],
        notes=body.notes,
        po_number=body.po_number,
        delivery_location_id=body.delivery_location_id,
    )
    return PackageResponse.from_package(package)


@router.get("/packages", response_model=PackagePageResponse)
async def list_packages(
    status: PackageStatus | None = None,
    search: str | None = None,
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    account_id: str = Depends(get_account_id),
    ledger: DeliveryLedger = Depends(get_ledger),
) -> PackagePageResponse:
    page = await ledger.list_packages(
        account_id, status=status, search=search, offset=offset, limit=limit
    )
    return PackagePageResponse.from_page(page)


@router.get("/packages/by-reference/{reference}", response_model=PackageResponse)
async def get_package_by_reference(
    reference: str,
    account_id: str = Depends(get_account_id),
    ledger: DeliveryLedger = Depends(get_ledger),
) -> PackageResponse:
    """Lookup used when a package label is scanned."""
    package = await ledger.get_package_by_reference(account_id, reference)
    return PackageResponse.from_package(package)


@router.get("/packages/{package_id}", response_model=PackageResponse)
async def get_package(
    package_id: str,
    account_id: str = Depends(get_account_id),
    ledger: DeliveryLedger = Depends(get_ledger),
) -> PackageResponse:
    package = await ledger.get_package(account_id, package_id)
    return PackageResponse.from_package(package)


@router.patch("/packages/{package_id}", response_model=PackageResponse)
async def update_package(
    package_id: str,
    body: UpdatePackageRequest,
    account_id: str = Depends(get_account_id),
    ledger: DeliveryLedger = Depends(get_ledger),
) -> PackageResponse:
    """Edit descriptive fields; refused once the package's POD is locked."""
    package = await ledger.update_package(
        account_id, package_id, **body.model_dump(exclude_none=True)
    )
    return PackageResponse.from_package(package)


@router.post("/packages/{package_id}/transitions", response_model=PackageResponse)
async def transition_package(
    package_id: str,
    body: TransitionRequest,
    account_id: str = Depends(get_account_id),
    ledger: DeliveryLedger = Depends(get_ledger),
) -> PackageResponse:
    package = await ledger.transition_package(
        account_id, package_id, body.transition
    )
    return PackageResponse.from_package(package)


@router.get("/packages/{package_id}/pod", response_model=PodResponse)
async def get_package_pod(
    package_id: str,
    account_id: str = Depends(get_account_id),
    ledger: DeliveryLedger = Depends(get_ledger),
) -> PodResponse:
    pod = await ledger.get_pod_for_package(account_id, package_id)
    return PodResponse.from_pod(pod)


@router.get(
    "/packages/{package_id}/history", response_model=list[AuditEntryResponse]
)
async def package_history(
    package_id: str,
    account_id: str = Depends(get_account_id),
    ledger: DeliveryLedger = Depends(get_ledger),
) -> list[AuditEntryResponse]:
    """Audit timeline of the package, oldest first."""
    entries = await ledger.entity_history(account_id, package_id)
    return [AuditEntryResponse.from_entry(entry) for entry in entries]
