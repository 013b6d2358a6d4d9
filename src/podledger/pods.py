"""Proof-of-delivery records: created once, locked once, never deleted."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from podledger.audit import AuditLog
from podledger.clock import Clock, as_utc, utcnow
from podledger.enums import AuditAction, EntityType, PodSequenceScope, StaffRole
from podledger.exceptions import (
    AlreadyLockedError,
    DuplicatePodError,
    ForbiddenError,
    LockedError,
    NotFoundError,
    ValidationError,
)
from podledger.packages import notify_safely
from podledger.protocols import (
    PackageRepository,
    PodDocumentRenderer,
    PodRepository,
    ReceiverNotifier,
)
from podledger.references import pod_sequence_key
from podledger.types import Caller
from podledger.validation import optional_text, require_text

logger = logging.getLogger(__name__)

CREATE_ROLES = (StaffRole.COLLECTION, StaffRole.WAREHOUSE, StaffRole.ADMIN)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class PodLedger:
    """Enforces the create-once / lock-once contract for PODs."""

    def __init__(
        self,
        repository: PodRepository,
        packages: PackageRepository,
        audit: AuditLog,
        *,
        notifier: ReceiverNotifier | None = None,
        renderer: PodDocumentRenderer | None = None,
        sequence_scope: PodSequenceScope = PodSequenceScope.GLOBAL,
        clock: Clock = utcnow,
    ) -> None:
        self.repository = repository
        self.packages = packages
        self.audit = audit
        self.notifier = notifier
        self.renderer = renderer
        self.sequence_scope = PodSequenceScope(sequence_scope)
        self._clock = clock

    async def get(self, pod_id: str) -> Any:
        pod = await self.repository.get_by_id(pod_id)
        if pod is None:
            raise NotFoundError(EntityType.POD, pod_id)
        return pod

    async def get_by_package(self, package_id: str) -> Any:
        pod = await self.repository.get_by_package_id(package_id)
        if pod is None:
            raise NotFoundError(EntityType.POD, package_id, package_id=package_id)
        return pod

    async def get_by_reference(self, reference: str) -> Any:
        pod = await self.repository.get_by_reference(reference.strip().upper())
        if pod is None:
            raise NotFoundError(EntityType.POD, reference)
        return pod

    async def create_pod(
        self,
        caller: Caller,
        *,
        package_id: str,
        signature_ref: str,
        signed_at: datetime,
        notes: str | None = None,
    ) -> Any:
        """Create the single POD of a package and mark the package collected.

        Staff and package details are copied onto the POD now and never
        follow later edits of their sources.
        """
        if not caller.has_role(*CREATE_ROLES):
            await self.audit.append(
                AuditAction.POD_CREATE_DENIED,
                EntityType.PACKAGE,
                package_id or "unassigned",
                caller.staff_id,
                {
                    "reason": f"Role '{caller.role}' may not complete collections",
                    **caller.audit_context(),
                },
            )
            raise ForbiddenError(
                "Insufficient permissions to create a POD",
                role=str(caller.role),
            )
        signature_ref = require_text(signature_ref, "signature_ref")
        if not isinstance(signed_at, datetime):
            raise ValidationError("signed_at must be a timestamp", field="signed_at")
        signed_at = as_utc(signed_at)

        package = await self.packages.get_by_id(package_id)
        if package is None:
            raise NotFoundError(EntityType.PACKAGE, package_id)

        now = self._clock()
        try:
            pod, package_after = await self.repository.create_for_package(
                package_id=package.id,
                sequence_scope=pod_sequence_key(self.sequence_scope, now),
                completed_at=now,
                staff_id=caller.staff_id,
                staff_name=caller.full_name,
                staff_email=caller.email,
                signature_ref=signature_ref,
                signed_at=signed_at,
                notes=optional_text(notes),
            )
        except DuplicatePodError as exc:
            await self.audit.append(
                AuditAction.POD_DUPLICATE_ATTEMPT,
                EntityType.PACKAGE,
                package.id,
                caller.staff_id,
                {
                    "package_reference": package.reference,
                    "existing_pod_reference": exc.context.get("pod_reference"),
                    "existing_pod_locked": exc.context.get("is_locked"),
                    **caller.audit_context(),
                },
            )
            logger.warning(
                "Duplicate POD attempt for %s by %s",
                package.reference,
                caller.staff_id,
            )
            raise

        await self.audit.append(
            AuditAction.POD_CREATED,
            EntityType.POD,
            pod.id,
            caller.staff_id,
            {
                "pod_reference": pod.pod_reference,
                "package_id": package.id,
                "package_reference": pod.package_reference,
                "receiver_email": pod.receiver_email,
                "signed_at": _iso(pod.signed_at),
                **caller.audit_context(),
            },
        )
        await self.audit.append(
            AuditAction.PACKAGE_COLLECTED,
            EntityType.PACKAGE,
            package.id,
            caller.staff_id,
            {
                "package_reference": package.reference,
                "pod_reference": pod.pod_reference,
                "previous_status": package.status,
                "new_status": package_after.status,
                **caller.audit_context(),
            },
        )
        logger.info(
            "POD %s created for %s by %s",
            pod.pod_reference,
            package.reference,
            caller.staff_id,
        )
        return pod

    async def attach_document(
        self, caller: Caller, pod_id: str, document_ref: str
    ) -> Any:
        """Store the rendered document reference on an unlocked POD."""
        pod = await self.get(pod_id)
        await self._guard_modification(caller, pod, attempted="attach_document")
        document_ref = require_text(document_ref, "document_ref")

        updated = await self.repository.attach_document(
            pod.id, document_ref=document_ref, generated_at=self._clock()
        )
        if updated is None:
            await self._guard_modification(
                caller, await self.get(pod.id), attempted="attach_document"
            )
            raise LockedError(
                f"POD {pod.pod_reference} is locked", pod_reference=pod.pod_reference
            )

        await self.audit.append(
            AuditAction.POD_DOCUMENT_ATTACHED,
            EntityType.POD,
            updated.id,
            caller.staff_id,
            {
                "pod_reference": updated.pod_reference,
                "document_ref": updated.document_ref,
                **caller.audit_context(),
            },
        )
        return updated

    async def render_document(self, caller: Caller, pod_id: str) -> Any:
        """Render the POD through the configured renderer and attach it."""
        if self.renderer is None:
            raise ValidationError("No POD document renderer is configured")
        pod = await self.get(pod_id)
        await self._guard_modification(caller, pod, attempted="render_document")
        package = await self.packages.get_by_id(pod.package_id)
        document_ref = await self.renderer.render(pod, package)
        return await self.attach_document(caller, pod.id, document_ref)

    async def lock(self, caller: Caller, pod_id: str) -> Any:
        """Lock a POD permanently.

        Locking twice is an error, not a no-op, so double-lock attempts
        show up in the audit trail.
        """
        pod = await self.get(pod_id)
        if pod.is_locked:
            await self._already_locked(caller, pod)

        if not self._may_modify(caller, pod):
            await self.audit.append(
                AuditAction.POD_LOCK_DENIED,
                EntityType.POD,
                pod.id,
                caller.staff_id,
                {
                    "pod_reference": pod.pod_reference,
                    "reason": "User is not the POD creator or an admin",
                    "pod_creator_id": pod.staff_id,
                    **caller.audit_context(),
                },
            )
            logger.warning(
                "Denied lock of %s by %s", pod.pod_reference, caller.staff_id
            )
            raise ForbiddenError(
                "Only the POD creator or an admin can lock the POD",
                pod_reference=pod.pod_reference,
            )

        if not await self.repository.mark_locked(pod.id, locked_at=self._clock()):
            await self._already_locked(caller, await self.get(pod.id))

        locked = await self.get(pod.id)
        await self.audit.append(
            AuditAction.POD_LOCKED,
            EntityType.POD,
            locked.id,
            caller.staff_id,
            {
                "pod_reference": locked.pod_reference,
                "package_id": locked.package_id,
                "package_reference": locked.package_reference,
                "locked_at": _iso(locked.locked_at),
                "document_attached": locked.document_ref is not None,
                "document_ref": locked.document_ref,
                **caller.audit_context(),
            },
        )
        logger.info("POD %s locked by %s", locked.pod_reference, caller.staff_id)

        if self.notifier is not None:
            package = await self.packages.get_by_id(locked.package_id)
            if await notify_safely(
                self.notifier.notify_pod_completed,
                locked,
                package,
                what="pod_completed",
            ):
                await self.audit.append(
                    AuditAction.POD_EMAIL_SENT,
                    EntityType.POD,
                    locked.id,
                    caller.staff_id,
                    {
                        "pod_reference": locked.pod_reference,
                        "receiver_email": locked.receiver_email,
                        "document_attached": locked.document_ref is not None,
                    },
                )
            else:
                logger.warning(
                    "POD confirmation for %s was not delivered",
                    locked.pod_reference,
                )
        return locked

    async def reject_deletion(self, caller: Caller, pod_id: str) -> None:
        """PODs are never deleted; every attempt is recorded and refused."""
        pod = await self.get(pod_id)
        await self.audit.append(
            AuditAction.POD_DELETE_ATTEMPT,
            EntityType.POD,
            pod.id,
            caller.staff_id,
            {
                "pod_reference": pod.pod_reference,
                "is_locked": pod.is_locked,
                "reason": "POD records cannot be deleted",
                **caller.audit_context(),
            },
        )
        logger.warning(
            "Refused deletion of %s by %s", pod.pod_reference, caller.staff_id
        )
        raise ForbiddenError(
            "POD records cannot be deleted",
            pod_reference=pod.pod_reference,
            is_locked=pod.is_locked,
        )

    @staticmethod
    def _may_modify(caller: Caller, pod: Any) -> bool:
        return caller.is_admin or pod.staff_id == caller.staff_id

    async def _guard_modification(
        self, caller: Caller, pod: Any, *, attempted: str
    ) -> None:
        if pod.is_locked:
            await self.audit.append(
                AuditAction.POD_MODIFICATION_DENIED,
                EntityType.POD,
                pod.id,
                caller.staff_id,
                {
                    "pod_reference": pod.pod_reference,
                    "locked_at": _iso(pod.locked_at),
                    "attempted": attempted,
                    "reason": "POD record is locked and cannot be modified",
                    **caller.audit_context(),
                },
            )
            logger.warning(
                "Denied %s on locked %s by %s",
                attempted,
                pod.pod_reference,
                caller.staff_id,
            )
            raise LockedError(
                f"POD {pod.pod_reference} is locked and cannot be modified",
                pod_reference=pod.pod_reference,
                locked_at=pod.locked_at,
            )
        if not self._may_modify(caller, pod):
            await self.audit.append(
                AuditAction.POD_MODIFICATION_DENIED,
                EntityType.POD,
                pod.id,
                caller.staff_id,
                {
                    "pod_reference": pod.pod_reference,
                    "attempted": attempted,
                    "reason": "User is not the POD creator or an admin",
                    **caller.audit_context(),
                },
            )
            raise ForbiddenError(
                "Only the POD creator or an admin can modify the POD",
                pod_reference=pod.pod_reference,
            )

    async def _already_locked(self, caller: Caller, pod: Any) -> None:
        await self.audit.append(
            AuditAction.POD_LOCK_DENIED,
            EntityType.POD,
            pod.id,
            caller.staff_id,
            {
                "pod_reference": pod.pod_reference,
                "locked_at": _iso(pod.locked_at),
                "reason": "POD is already locked",
                **caller.audit_context(),
            },
        )
        logger.warning(
            "Repeated lock of %s by %s", pod.pod_reference, caller.staff_id
        )
        raise AlreadyLockedError(
            f"POD {pod.pod_reference} is already locked",
            pod_reference=pod.pod_reference,
            locked_at=pod.locked_at,
        )
