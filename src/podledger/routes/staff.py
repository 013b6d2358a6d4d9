"""Staff management endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from podledger.dependencies import get_account_id, get_ledger
from podledger.ledger import DeliveryLedger
from podledger.schemas import CreateStaffRequest, StaffResponse, UpdateStaffRequest

router = APIRouter(tags=["staff"])


@router.get("/staff", response_model=list[StaffResponse])
async def list_staff(
    include_inactive: bool = True,
    account_id: str = Depends(get_account_id),
    ledger: DeliveryLedger = Depends(get_ledger),
) -> list[StaffResponse]:
    staff = await ledger.list_staff(account_id, include_inactive=include_inactive)
    return [StaffResponse.from_staff(profile) for profile in staff]


@router.post("/staff", response_model=StaffResponse, status_code=201)
async def create_staff(
    body: CreateStaffRequest,
    account_id: str = Depends(get_account_id),
    ledger: DeliveryLedger = Depends(get_ledger),
) -> StaffResponse:
    profile = await ledger.create_staff(
        account_id,
        staff_account_id=body.account_id,
        email=body.email,
        full_name=body.full_name,
        role=body.role,
        phone=body.phone,
    )
    return StaffResponse.from_staff(profile)


@router.patch("/staff/{staff_id}", response_model=StaffResponse)
async def update_staff(
    staff_id: str,
    body: UpdateStaffRequest,
    account_id: str = Depends(get_account_id),
    ledger: DeliveryLedger = Depends(get_ledger),
) -> StaffResponse:
    profile = await ledger.update_staff(
        account_id, staff_id, **body.model_dump(exclude_none=True)
    )
    return StaffResponse.from_staff(profile)


@router.post("/staff/{staff_id}/deactivate", response_model=StaffResponse)
async def deactivate_staff(
    staff_id: str,
    account_id: str = Depends(get_account_id),
    ledger: DeliveryLedger = Depends(get_ledger),
) -> StaffResponse:
    """Deactivated staff keep their history but can no longer act."""
    profile = await ledger.deactivate_staff(account_id, staff_id)
    return StaffResponse.from_staff(profile)


@router.post("/staff/{staff_id}/reactivate", response_model=StaffResponse)
async def reactivate_staff(
    staff_id: str,
    account_id: str = Depends(get_account_id),
    ledger: DeliveryLedger = Depends(get_ledger),
) -> StaffResponse:
    profile = await ledger.reactivate_staff(account_id, staff_id)
    return StaffResponse.from_staff(profile)
