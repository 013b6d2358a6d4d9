"""Proof-of-delivery endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from podledger.dependencies import get_account_id, get_ledger
from podledger.ledger import DeliveryLedger
from podledger.schemas import AttachDocumentRequest, CreatePodRequest, PodResponse

router = APIRouter(tags=["pods"])


@router.post("/pods", response_model=PodResponse, status_code=201)
async def create_pod(
    body: CreatePodRequest,
    account_id: str = Depends(get_account_id),
    ledger: DeliveryLedger = Depends(get_ledger),
) -> PodResponse:
    """Record the receiver's signature; the package becomes collected."""
    pod = await ledger.create_pod(
        account_id,
        package_id=body.package_id,
        signature_ref=body.signature_ref,
        signed_at=body.signed_at,
        notes=body.notes,
    )
    return PodResponse.from_pod(pod)


@router.get("/pods/by-reference/{reference}", response_model=PodResponse)
async def get_pod_by_reference(
    reference: str,
    account_id: str = Depends(get_account_id),
    ledger: DeliveryLedger = Depends(get_ledger),
) -> PodResponse:
    pod = await ledger.get_pod_by_reference(account_id, reference)
    return PodResponse.from_pod(pod)


@router.get("/pods/{pod_id}", response_model=PodResponse)
async def get_pod(
    pod_id: str,
    account_id: str = Depends(get_account_id),
    ledger: DeliveryLedger = Depends(get_ledger),
) -> PodResponse:
    pod = await ledger.get_pod(account_id, pod_id)
    return PodResponse.from_pod(pod)


@router.post("/pods/{pod_id}/document", response_model=PodResponse)
async def attach_document(
    pod_id: str,
    body: AttachDocumentRequest,
    account_id: str = Depends(get_account_id),
    ledger: DeliveryLedger = Depends(get_ledger),
) -> PodResponse:
    pod = await ledger.attach_pod_document(account_id, pod_id, body.document_ref)
    return PodResponse.from_pod(pod)


@router.post("/pods/{pod_id}/render", response_model=PodResponse)
async def render_document(
    pod_id: str,
    account_id: str = Depends(get_account_id),
    ledger: DeliveryLedger = Depends(get_ledger),
) -> PodResponse:
    """Render the POD document with the configured renderer and attach it."""
    pod = await ledger.render_pod_document(account_id, pod_id)
    return PodResponse.from_pod(pod)


@router.post("/pods/{pod_id}/lock", response_model=PodResponse)
async def lock_pod(
    pod_id: str,
    account_id: str = Depends(get_account_id),
    ledger: DeliveryLedger = Depends(get_ledger),
) -> PodResponse:
    """Lock the POD for good. A second lock is rejected, not ignored."""
    pod = await ledger.lock_pod(account_id, pod_id)
    return PodResponse.from_pod(pod)


@router.delete("/pods/{pod_id}", status_code=204)
async def delete_pod(
    pod_id: str,
    account_id: str = Depends(get_account_id),
    ledger: DeliveryLedger = Depends(get_ledger),
) -> None:
    """Always refused; the attempt is written to the audit log."""
    await ledger.delete_pod(account_id, pod_id)
