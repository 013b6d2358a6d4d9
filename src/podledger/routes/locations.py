"""Delivery location endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from podledger.dependencies import get_account_id, get_ledger
from podledger.ledger import DeliveryLedger
from podledger.schemas import (
    CreateLocationRequest,
    LocationResponse,
    UpdateLocationRequest,
)

router = APIRouter(tags=["locations"])


@router.get("/locations", response_model=list[LocationResponse])
async def list_locations(
    active_only: bool = False,
    account_id: str = Depends(get_account_id),
    ledger: DeliveryLedger = Depends(get_ledger),
) -> list[LocationResponse]:
    locations = await ledger.list_locations(account_id, active_only=active_only)
    return [LocationResponse.from_location(location) for location in locations]


@router.post("/locations", response_model=LocationResponse, status_code=201)
async def create_location(
    body: CreateLocationRequest,
    account_id: str = Depends(get_account_id),
    ledger: DeliveryLedger = Depends(get_ledger),
) -> LocationResponse:
    location = await ledger.create_location(account_id, **body.model_dump())
    return LocationResponse.from_location(location)


@router.patch("/locations/{location_id}", response_model=LocationResponse)
async def update_location(
    location_id: str,
    body: UpdateLocationRequest,
    account_id: str = Depends(get_account_id),
    ledger: DeliveryLedger = Depends(get_ledger),
) -> LocationResponse:
    location = await ledger.update_location(
        account_id, location_id, **body.model_dump(exclude_none=True)
    )
    return LocationResponse.from_location(location)
