"""Package records and their status transitions."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from podledger.audit import AuditLog
from podledger.clock import Clock, utcnow
from podledger.enums import (
    AuditAction,
    EntityType,
    PackageStatus,
    PackageTransition,
    StaffRole,
)
from podledger.exceptions import (
    ForbiddenError,
    InvalidTransitionError,
    LockedError,
    NotFoundError,
    ValidationError,
)
from podledger.locations import LocationDirectory
from podledger.protocols import PackageRepository, PodRepository, ReceiverNotifier
from podledger.references import generate_package_reference
from podledger.transitions import TransitionRule, rule_for
from podledger.types import Caller, PackagePage
from podledger.validation import (
    normalize_email,
    optional_text,
    validate_items,
)

logger = logging.getLogger(__name__)

# Entity id recorded when a denied attempt targets a record that does not exist yet.
UNASSIGNED_ENTITY_ID = "unassigned"

CREATE_ROLES = (StaffRole.WAREHOUSE, StaffRole.ADMIN)
EDIT_ROLES = (StaffRole.WAREHOUSE, StaffRole.COLLECTION, StaffRole.ADMIN)


async def notify_safely(send, *args: Any, what: str) -> bool:
    """Run an advisory notification; any failure counts as not sent."""
    try:
        return bool(await send(*args))
    except Exception:
        logger.exception("Notification %s failed", what)
        return False


class PackageRegistry:
    """Owns package records and validates/applies status transitions."""

    def __init__(
        self,
        repository: PackageRepository,
        pods: PodRepository,
        audit: AuditLog,
        locations: LocationDirectory,
        *,
        notifier: ReceiverNotifier | None = None,
        reference_attempts: int = 10,
        clock: Clock = utcnow,
    ) -> None:
        self.repository = repository
        self.pods = pods
        self.audit = audit
        self.locations = locations
        self.notifier = notifier
        self.reference_attempts = reference_attempts
        self._clock = clock

    async def get(self, package_id: str) -> Any:
        package = await self.repository.get_by_id(package_id)
        if package is None:
            raise NotFoundError(EntityType.PACKAGE, package_id)
        return package

    async def get_by_reference(self, reference: str) -> Any:
        package = await self.repository.get_by_reference(reference.strip().upper())
        if package is None:
            raise NotFoundError(EntityType.PACKAGE, reference)
        return package

    async def list(
        self,
        *,
        status: PackageStatus | str | None = None,
        search: str | None = None,
        offset: int = 0,
        limit: int = 50,
    ) -> PackagePage:
        if status is not None:
            try:
                status = PackageStatus(status).value
            except ValueError as exc:
                raise ValidationError(
                    f"Unknown status {status!r}", field="status"
                ) from exc
        if offset < 0 or limit < 1:
            raise ValidationError("offset must be >= 0 and limit >= 1")
        packages, total = await self.repository.list(
            status=status,
            search=optional_text(search),
            offset=offset,
            limit=limit,
        )
        return PackagePage(
            packages=packages, total=total, offset=offset, limit=limit
        )

    async def create_package(
        self,
        caller: Caller,
        *,
        receiver_email: str,
        items: Iterable[Mapping[str, Any]],
        notes: str | None = None,
        po_number: str | None = None,
        delivery_location_id: str | None = None,
    ) -> Any:
        """Register a new package as ``pending``.

        When a notification channel confirms delivery to the receiver the
        package moves on to ``notified``; a failed notification leaves it
        pending and never fails the creation.
        """
        if not caller.has_role(*CREATE_ROLES):
            await self._deny(
                caller,
                UNASSIGNED_ENTITY_ID,
                AuditAction.PACKAGE_CREATE_DENIED,
                attempted="create",
                reason="Only warehouse staff and admins can create packages",
            )
            raise ForbiddenError(
                "Insufficient permissions to create packages",
                role=str(caller.role),
            )

        receiver_email = normalize_email(receiver_email, field="receiver_email")
        item_list = validate_items(items)
        location_id = optional_text(delivery_location_id)
        if location_id is not None:
            await self.locations.require_active(location_id)

        now = self._clock()
        package = await self.repository.create(
            reference=await self._new_reference(),
            receiver_email=receiver_email,
            notes=optional_text(notes),
            po_number=optional_text(po_number),
            delivery_location_id=location_id,
            status=PackageStatus.PENDING.value,
            created_by=caller.staff_id,
            created_at=now,
            updated_at=now,
            items=item_list,
        )
        await self.audit.append(
            AuditAction.PACKAGE_CREATED,
            EntityType.PACKAGE,
            package.id,
            caller.staff_id,
            {
                "package_reference": package.reference,
                "receiver_email": package.receiver_email,
                "item_count": len(item_list),
                "po_number": package.po_number,
                "delivery_location_id": package.delivery_location_id,
                **caller.audit_context(),
            },
        )
        logger.info("Package %s created by %s", package.reference, caller.staff_id)

        if self.notifier is not None and await notify_safely(
            self.notifier.notify_package_created, package, what="package_created"
        ):
            notified = await self.repository.apply_transition(
                package.id,
                from_statuses=[PackageStatus.PENDING.value],
                to_status=PackageStatus.NOTIFIED.value,
                updated_at=self._clock(),
            )
            if notified is not None:
                package = notified
                await self.audit.append(
                    AuditAction.RECEIVER_NOTIFIED,
                    EntityType.PACKAGE,
                    package.id,
                    caller.staff_id,
                    {
                        "package_reference": package.reference,
                        "receiver_email": package.receiver_email,
                        "previous_status": PackageStatus.PENDING.value,
                        "new_status": PackageStatus.NOTIFIED.value,
                    },
                )
        elif self.notifier is not None:
            logger.warning(
                "Receiver of %s was not notified; package stays pending",
                package.reference,
            )
        return package

    async def transition(
        self,
        caller: Caller,
        package_id: str,
        transition: PackageTransition | str,
    ) -> Any:
        """Apply one edge of the status graph.

        Checks, in order: existence, locked POD, transition name, caller
        role, source status. A locked package refuses even an unknown
        transition. A repeated transition fails with InvalidTransitionError.
        """
        package = await self.get(package_id)
        await self.ensure_unlocked(
            caller, package, attempted={"transition": str(transition)}
        )
        try:
            rule = rule_for(transition)
        except ValueError as exc:
            raise ValidationError(
                f"Unknown transition {transition!r}",
                field="transition",
                allowed=[t.value for t in PackageTransition],
            ) from exc

        if not caller.has_role(*rule.roles):
            await self._deny(
                caller,
                package.id,
                AuditAction.PACKAGE_TRANSITION_DENIED,
                attempted=rule.transition.value,
                reason=f"Role '{caller.role}' may not {rule.transition.value}",
                package_reference=package.reference,
                current_status=package.status,
            )
            raise ForbiddenError(
                f"Role '{caller.role}' may not {rule.transition.value} packages",
                role=str(caller.role),
                transition=rule.transition.value,
            )

        self._check_source(rule, package)
        now = self._clock()
        updated = await self.repository.apply_transition(
            package.id,
            from_statuses=[s.value for s in rule.sources],
            to_status=rule.target.value,
            updated_at=now,
            **rule.stamp_fields(caller.staff_id, now),
        )
        if updated is None:
            # Lost a race: the status moved or a POD got locked meanwhile.
            fresh = await self.get(package.id)
            await self.ensure_unlocked(
                caller, fresh, attempted={"transition": rule.transition.value}
            )
            self._check_source(rule, fresh)
            raise InvalidTransitionError(
                f"Package {fresh.reference} changed concurrently",
                package_reference=fresh.reference,
                current_status=fresh.status,
            )

        metadata: dict[str, Any] = {
            "package_reference": updated.reference,
            "transition": rule.transition.value,
            "previous_status": package.status,
            "new_status": updated.status,
            **caller.audit_context(),
        }
        if rule.transition == PackageTransition.PICKUP and self.notifier is not None:
            metadata["notification_sent"] = await notify_safely(
                self.notifier.notify_in_transit, updated, what="in_transit"
            )
        await self.audit.append(
            rule.audit_action,
            EntityType.PACKAGE,
            updated.id,
            caller.staff_id,
            metadata,
        )
        logger.info(
            "Package %s: %s -> %s by %s",
            updated.reference,
            package.status,
            updated.status,
            caller.staff_id,
        )
        return updated

    async def update_details(
        self,
        caller: Caller,
        package_id: str,
        *,
        notes: str | None = None,
        receiver_email: str | None = None,
        po_number: str | None = None,
        delivery_location_id: str | None = None,
    ) -> Any:
        """Edit descriptive fields. Status only changes through ``transition``."""
        package = await self.get(package_id)
        attempted = {
            key: value
            for key, value in {
                "notes": notes,
                "receiver_email": receiver_email,
                "po_number": po_number,
                "delivery_location_id": delivery_location_id,
            }.items()
            if value is not None
        }
        await self.ensure_unlocked(caller, package, attempted=attempted)

        if not caller.has_role(*EDIT_ROLES):
            await self._deny(
                caller,
                package.id,
                AuditAction.PACKAGE_UPDATE_DENIED,
                attempted="update",
                reason="Insufficient permissions to update packages",
                package_reference=package.reference,
            )
            raise ForbiddenError(
                "Insufficient permissions to update packages",
                role=str(caller.role),
            )

        changes: dict[str, Any] = {}
        if notes is not None:
            changes["notes"] = optional_text(notes)
        if receiver_email is not None:
            changes["receiver_email"] = normalize_email(
                receiver_email, field="receiver_email"
            )
        if po_number is not None:
            changes["po_number"] = optional_text(po_number)
        if delivery_location_id is not None:
            location_id = optional_text(delivery_location_id)
            if location_id is not None:
                await self.locations.require_active(location_id)
            changes["delivery_location_id"] = location_id
        changes = {
            key: value
            for key, value in changes.items()
            if getattr(package, key) != value
        }
        if not changes:
            return package

        updated = await self.repository.update_details(
            package.id, updated_at=self._clock(), **changes
        )
        if updated is None:
            await self.ensure_unlocked(
                caller, await self.get(package.id), attempted=attempted
            )
            raise InvalidTransitionError(
                f"Package {package.reference} changed concurrently"
            )

        await self.audit.append(
            AuditAction.PACKAGE_UPDATED,
            EntityType.PACKAGE,
            updated.id,
            caller.staff_id,
            {
                "package_reference": updated.reference,
                "changes": changes,
                "previous": {key: getattr(package, key) for key in changes},
                **caller.audit_context(),
            },
        )
        return updated

    async def ensure_unlocked(
        self, caller: Caller, package: Any, *, attempted: Any
    ) -> None:
        """Reject (and audit) any mutation of a package whose POD is locked."""
        pod = await self.pods.get_by_package_id(package.id)
        if pod is None or not pod.is_locked:
            return
        await self.audit.append(
            AuditAction.PACKAGE_UPDATE_DENIED,
            EntityType.PACKAGE,
            package.id,
            caller.staff_id,
            {
                "package_reference": package.reference,
                "pod_reference": pod.pod_reference,
                "locked_at": pod.locked_at.isoformat() if pod.locked_at else None,
                "reason": "Package has a locked POD and cannot be modified",
                "attempted_changes": attempted,
                **caller.audit_context(),
            },
        )
        logger.warning(
            "Denied change to locked package %s by %s",
            package.reference,
            caller.staff_id,
        )
        raise LockedError(
            f"Package {package.reference} has a completed and locked POD "
            f"({pod.pod_reference}). Locked packages cannot be modified.",
            package_reference=package.reference,
            pod_reference=pod.pod_reference,
            locked_at=pod.locked_at,
        )

    async def _new_reference(self) -> str:
        for _ in range(self.reference_attempts):
            reference = generate_package_reference(self._clock())
            if not await self.repository.reference_exists(reference):
                return reference
        raise ValidationError(
            "Could not allocate a unique package reference",
            attempts=self.reference_attempts,
        )

    @staticmethod
    def _check_source(rule: TransitionRule, package: Any) -> None:
        if package.status in rule.sources:
            return
        raise InvalidTransitionError(
            f"Cannot {rule.transition.value} package {package.reference} "
            f"with status '{package.status}'",
            package_reference=package.reference,
            current_status=package.status,
            transition=rule.transition.value,
            allowed_from=sorted(s.value for s in rule.sources),
        )

    async def _deny(
        self,
        caller: Caller,
        entity_id: str,
        action: AuditAction,
        *,
        attempted: str,
        reason: str,
        **extra: Any,
    ) -> None:
        await self.audit.append(
            action,
            EntityType.PACKAGE,
            entity_id,
            caller.staff_id,
            {
                "attempted": attempted,
                "reason": reason,
                **extra,
                **caller.audit_context(),
            },
        )
        logger.warning(
            "Denied %s on package %s by %s", attempted, entity_id, caller.staff_id
        )
