"""SQLAlchemy models for staff, packages, PODs and the audit trail."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from podledger.clock import as_utc, utcnow


def _new_id() -> str:
    return str(uuid.uuid4())


class UTCDateTime(TypeDecorator):
    """Timestamp stored as naive UTC and loaded back as aware UTC.

    SQLite keeps no offset, so values are converted before they are
    bound. Naive input is taken to be UTC already.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        return as_utc(value).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        return as_utc(value)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""


class StaffProfileModel(Base):
    __tablename__ = "staff_profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    account_id: Mapped[str] = mapped_column(String(128), unique=True)
    email: Mapped[str] = mapped_column(String(320), unique=True)
    full_name: Mapped[str] = mapped_column(String(200))
    role: Mapped[str] = mapped_column(String(32))
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow
    )


class DeliveryLocationModel(Base):
    __tablename__ = "delivery_locations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200), unique=True)
    address: Mapped[str] = mapped_column(Text)
    maps_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow
    )


class ReceiverProfileModel(Base):
    """Employee who can collect packages. Not a login account."""

    __tablename__ = "receiver_profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200), index=True)
    surname: Mapped[str] = mapped_column(String(200), index=True)
    employee_number: Mapped[str] = mapped_column(String(64), unique=True)
    email: Mapped[str] = mapped_column(String(320), unique=True)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow
    )

    @property
    def full_name(self) -> str:
        return f"{self.name} {self.surname}"


class PackageModel(Base):
    """A tracked package; ``status`` only moves along the transition graph."""

    __tablename__ = "packages"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    reference: Mapped[str] = mapped_column(String(32), unique=True)
    receiver_email: Mapped[str] = mapped_column(String(320), index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    po_number: Mapped[str | None] = mapped_column(String(128), nullable=True)
    delivery_location_id: Mapped[str | None] = mapped_column(
        ForeignKey("delivery_locations.id"), nullable=True
    )
    status: Mapped[str] = mapped_column(String(32), default="pending", index=True)
    created_by: Mapped[str] = mapped_column(String(36))
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utcnow
    )
    picked_up_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    picked_up_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )
    received_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    received_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )
    collected_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    collected_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )
    # Plain column: pods already reference packages.
    pod_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    items: Mapped[list[PackageItemModel]] = relationship(
        back_populates="package",
        cascade="all, delete-orphan",
        order_by="PackageItemModel.position",
        lazy="selectin",
    )


class PackageItemModel(Base):
    __tablename__ = "package_items"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    package_id: Mapped[str] = mapped_column(
        ForeignKey("packages.id"), index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0)
    quantity: Mapped[int] = mapped_column(Integer)
    description: Mapped[str] = mapped_column(Text)

    package: Mapped[PackageModel] = relationship(back_populates="items")


class PodModel(Base):
    """Proof of delivery. One per package; immutable once locked."""

    __tablename__ = "pods"
    __table_args__ = (
        UniqueConstraint("package_id", name="uq_pods_package_id"),
        UniqueConstraint(
            "reference_scope", "reference_sequence", name="uq_pods_sequence"
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    pod_reference: Mapped[str] = mapped_column(String(32), unique=True)
    package_id: Mapped[str] = mapped_column(ForeignKey("packages.id"))
    package_reference: Mapped[str] = mapped_column(String(32))
    receiver_email: Mapped[str] = mapped_column(String(320))
    staff_id: Mapped[str] = mapped_column(String(36))
    staff_name: Mapped[str] = mapped_column(String(200))
    staff_email: Mapped[str] = mapped_column(String(320))
    signature_ref: Mapped[str] = mapped_column(String(1024))
    signed_at: Mapped[datetime] = mapped_column(UTCDateTime())
    completed_at: Mapped[datetime] = mapped_column(UTCDateTime())
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    document_ref: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    document_generated_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )
    is_locked: Mapped[bool] = mapped_column(Boolean, default=False)
    locked_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )
    reference_scope: Mapped[str] = mapped_column(String(16))
    reference_sequence: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utcnow
    )


class PodSequenceModel(Base):
    """Counter row per sequence scope (``global`` or a year)."""

    __tablename__ = "pod_sequences"

    scope: Mapped[str] = mapped_column(String(16), primary_key=True)
    value: Mapped[int] = mapped_column(Integer, default=0)


class AuditLogModel(Base):
    """Append-only audit entry."""

    __tablename__ = "audit_log"
    __table_args__ = (
        Index("ix_audit_log_entity", "entity_type", "entity_id"),
        Index("ix_audit_log_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    action: Mapped[str] = mapped_column(String(64), index=True)
    entity_type: Mapped[str] = mapped_column(String(32))
    entity_id: Mapped[str] = mapped_column(String(64))
    performed_by: Mapped[str] = mapped_column(String(36), index=True)
    # ``metadata`` is reserved on declarative classes.
    metadata_: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime())


class ImmutableRecordError(RuntimeError):
    """Raised when the ORM is asked to rewrite history."""


@event.listens_for(AuditLogModel, "before_update")
def _refuse_audit_update(mapper, connection, target) -> None:
    raise ImmutableRecordError("Audit entries cannot be modified")


@event.listens_for(AuditLogModel, "before_delete")
def _refuse_audit_delete(mapper, connection, target) -> None:
    raise ImmutableRecordError("Audit entries cannot be deleted")


@event.listens_for(PodModel, "before_delete")
def _refuse_pod_delete(mapper, connection, target) -> None:
    raise ImmutableRecordError("POD records cannot be deleted")
