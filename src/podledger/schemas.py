"""Request and response bodies of the HTTP API."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from podledger.enums import PackageTransition, StaffRole


class PackageItemSchema(BaseModel):
    quantity: int
    description: str


class CreatePackageRequest(BaseModel):
    """Quantity and e-mail rules are enforced by the ledger itself."""

    receiver_email: str
    items: list[PackageItemSchema]
    notes: str | None = None
    po_number: str | None = None
    delivery_location_id: str | None = None


class UpdatePackageRequest(BaseModel):
    """Omitted fields are left untouched."""

    notes: str | None = None
    receiver_email: str | None = None
    po_number: str | None = None
    delivery_location_id: str | None = None


class TransitionRequest(BaseModel):
    transition: PackageTransition


class PackageResponse(BaseModel):
    id: str
    reference: str
    receiver_email: str
    notes: str | None = None
    po_number: str | None = None
    delivery_location_id: str | None = None
    status: str
    items: list[PackageItemSchema] = Field(default_factory=list)
    created_by: str
    created_at: datetime
    updated_at: datetime
    picked_up_by: str | None = None
    picked_up_at: datetime | None = None
    received_by: str | None = None
    received_at: datetime | None = None
    collected_by: str | None = None
    collected_at: datetime | None = None
    pod_id: str | None = None

    @classmethod
    def from_package(cls, package: Any) -> PackageResponse:
        return cls(
            id=package.id,
            reference=package.reference,
            receiver_email=package.receiver_email,
            notes=package.notes,
            po_number=package.po_number,
            delivery_location_id=package.delivery_location_id,
            status=package.status,
            items=[
                PackageItemSchema(
                    quantity=item.quantity, description=item.description
                )
                for item in package.items
            ],
            created_by=package.created_by,
            created_at=package.created_at,
            updated_at=package.updated_at,
            picked_up_by=package.picked_up_by,
            picked_up_at=package.picked_up_at,
            received_by=package.received_by,
            received_at=package.received_at,
            collected_by=package.collected_by,
            collected_at=package.collected_at,
            pod_id=package.pod_id,
        )


class PackagePageResponse(BaseModel):
    packages: list[PackageResponse]
    total: int
    offset: int
    limit: int

    @classmethod
    def from_page(cls, page: Any) -> PackagePageResponse:
        return cls(
            packages=[PackageResponse.from_package(p) for p in page.packages],
            total=page.total,
            offset=page.offset,
            limit=page.limit,
        )


class CreatePodRequest(BaseModel):
    package_id: str
    signature_ref: str
    signed_at: datetime
    notes: str | None = None


class AttachDocumentRequest(BaseModel):
    document_ref: str


class PodResponse(BaseModel):
    id: str
    pod_reference: str
    package_id: str
    package_reference: str
    receiver_email: str
    staff_id: str
    staff_name: str
    staff_email: str
    signature_ref: str
    signed_at: datetime
    completed_at: datetime
    notes: str | None = None
    document_ref: str | None = None
    document_generated_at: datetime | None = None
    is_locked: bool
    locked_at: datetime | None = None

    @classmethod
    def from_pod(cls, pod: Any) -> PodResponse:
        return cls(
            id=pod.id,
            pod_reference=pod.pod_reference,
            package_id=pod.package_id,
            package_reference=pod.package_reference,
            receiver_email=pod.receiver_email,
            staff_id=pod.staff_id,
            staff_name=pod.staff_name,
            staff_email=pod.staff_email,
            signature_ref=pod.signature_ref,
            signed_at=pod.signed_at,
            completed_at=pod.completed_at,
            notes=pod.notes,
            document_ref=pod.document_ref,
            document_generated_at=pod.document_generated_at,
            is_locked=pod.is_locked,
            locked_at=pod.locked_at,
        )


class AppendAuditRequest(BaseModel):
    action: str
    entity_type: str
    entity_id: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class AuditEntryResponse(BaseModel):
    id: int
    action: str
    entity_type: str
    entity_id: str
    performed_by: str
    metadata: dict[str, Any]
    created_at: datetime

    @classmethod
    def from_entry(cls, entry: Any) -> AuditEntryResponse:
        return cls(
            id=entry.id,
            action=entry.action,
            entity_type=entry.entity_type,
            entity_id=entry.entity_id,
            performed_by=entry.performed_by,
            metadata=entry.metadata_ or {},
            created_at=entry.created_at,
        )


class AuditPageResponse(BaseModel):
    entries: list[AuditEntryResponse]
    total: int
    offset: int
    limit: int

    @classmethod
    def from_page(cls, page: Any) -> AuditPageResponse:
        return cls(
            entries=[AuditEntryResponse.from_entry(e) for e in page.entries],
            total=page.total,
            offset=page.offset,
            limit=page.limit,
        )


class CreateStaffRequest(BaseModel):
    account_id: str
    email: str
    full_name: str
    role: StaffRole
    phone: str | None = None


class UpdateStaffRequest(BaseModel):
    full_name: str | None = None
    role: StaffRole | None = None
    phone: str | None = None


class StaffResponse(BaseModel):
    id: str
    account_id: str
    email: str
    full_name: str
    role: str
    phone: str | None = None
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_staff(cls, staff: Any) -> StaffResponse:
        return cls(
            id=staff.id,
            account_id=staff.account_id,
            email=staff.email,
            full_name=staff.full_name,
            role=staff.role,
            phone=staff.phone,
            is_active=staff.is_active,
            created_at=staff.created_at,
            updated_at=staff.updated_at,
        )


class CreateLocationRequest(BaseModel):
    name: str
    address: str
    maps_url: str | None = None


class UpdateLocationRequest(BaseModel):
    name: str | None = None
    address: str | None = None
    maps_url: str | None = None
    is_active: bool | None = None


class LocationResponse(BaseModel):
    id: str
    name: str
    address: str
    maps_url: str | None = None
    is_active: bool

    @classmethod
    def from_location(cls, location: Any) -> LocationResponse:
        return cls(
            id=location.id,
            name=location.name,
            address=location.address,
            maps_url=location.maps_url,
            is_active=location.is_active,
        )


class CreateReceiverRequest(BaseModel):
    name: str
    surname: str
    employee_number: str
    email: str
    phone: str | None = None


class UpdateReceiverRequest(BaseModel):
    name: str | None = None
    surname: str | None = None
    employee_number: str | None = None
    email: str | None = None
    phone: str | None = None


class ReceiverResponse(BaseModel):
    id: str
    name: str
    surname: str
    full_name: str
    employee_number: str
    email: str
    phone: str | None = None
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_receiver(cls, receiver: Any) -> ReceiverResponse:
        return cls(
            id=receiver.id,
            name=receiver.name,
            surname=receiver.surname,
            full_name=receiver.full_name,
            employee_number=receiver.employee_number,
            email=receiver.email,
            phone=receiver.phone,
            is_active=receiver.is_active,
            created_at=receiver.created_at,
            updated_at=receiver.updated_at,
        )
