"""Receiver directory endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from podledger.dependencies import get_account_id, get_ledger
from podledger.ledger import DeliveryLedger
from podledger.schemas import (
    CreateReceiverRequest,
    ReceiverResponse,
    UpdateReceiverRequest,
)

router = APIRouter(tags=["receivers"])


@router.get("/receivers", response_model=list[ReceiverResponse])
async def list_receivers(
    active_only: bool = False,
    account_id: str = Depends(get_account_id),
    ledger: DeliveryLedger = Depends(get_ledger),
) -> list[ReceiverResponse]:
    receivers = await ledger.list_receivers(account_id, active_only=active_only)
    return [ReceiverResponse.from_receiver(receiver) for receiver in receivers]


@router.get("/receivers/search", response_model=list[ReceiverResponse])
async def search_receivers(
    q: str = "",
    limit: int = 20,
    account_id: str = Depends(get_account_id),
    ledger: DeliveryLedger = Depends(get_ledger),
) -> list[ReceiverResponse]:
    """Active receivers by name, surname, employee number or email."""
    receivers = await ledger.search_receivers(account_id, q, limit=limit)
    return [ReceiverResponse.from_receiver(receiver) for receiver in receivers]


@router.get("/receivers/{receiver_id}", response_model=ReceiverResponse)
async def get_receiver(
    receiver_id: str,
    account_id: str = Depends(get_account_id),
    ledger: DeliveryLedger = Depends(get_ledger),
) -> ReceiverResponse:
    receiver = await ledger.get_receiver(account_id, receiver_id)
    return ReceiverResponse.from_receiver(receiver)


@router.post("/receivers", response_model=ReceiverResponse, status_code=201)
async def create_receiver(
    body: CreateReceiverRequest,
    account_id: str = Depends(get_account_id),
    ledger: DeliveryLedger = Depends(get_ledger),
) -> ReceiverResponse:
    receiver = await ledger.create_receiver(account_id, **body.model_dump())
    return ReceiverResponse.from_receiver(receiver)


@router.patch("/receivers/{receiver_id}", response_model=ReceiverResponse)
async def update_receiver(
    receiver_id: str,
    body: UpdateReceiverRequest,
    account_id: str = Depends(get_account_id),
    ledger: DeliveryLedger = Depends(get_ledger),
) -> ReceiverResponse:
    receiver = await ledger.update_receiver(
        account_id, receiver_id, **body.model_dump(exclude_none=True)
    )
    return ReceiverResponse.from_receiver(receiver)


@router.post("/receivers/{receiver_id}/deactivate", response_model=ReceiverResponse)
async def deactivate_receiver(
    receiver_id: str,
    account_id: str = Depends(get_account_id),
    ledger: DeliveryLedger = Depends(get_ledger),
) -> ReceiverResponse:
    receiver = await ledger.set_receiver_active(account_id, receiver_id, False)
    return ReceiverResponse.from_receiver(receiver)


@router.post("/receivers/{receiver_id}/reactivate", response_model=ReceiverResponse)
async def reactivate_receiver(
    receiver_id: str,
    account_id: str = Depends(get_account_id),
    ledger: DeliveryLedger = Depends(get_ledger),
) -> ReceiverResponse:
    receiver = await ledger.set_receiver_active(account_id, receiver_id, True)
    return ReceiverResponse.from_receiver(receiver)
