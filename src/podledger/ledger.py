"""DeliveryLedger: the single service surface over packages, PODs and audit."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from podledger.audit import AuditLog
from podledger.clock import Clock, utcnow
from podledger.config import PodLedgerConfig
from podledger.enums import PackageStatus, PackageTransition, StaffRole
from podledger.identity import IdentityDirectory
from podledger.locations import LocationDirectory
from podledger.locking import KeyedLock
from podledger.packages import PackageRegistry
from podledger.pods import PodLedger
from podledger.protocols import (
    AuditLogRepository,
    LocationRepository,
    PackageRepository,
    PodDocumentRenderer,
    PodRepository,
    ReceiverNotifier,
    ReceiverRepository,
    StaffRepository,
)
from podledger.receivers import ReceiverDirectory
from podledger.types import AuditFilters, AuditPage, Caller, PackagePage

logger = logging.getLogger(__name__)


class DeliveryLedger:
    """Orchestrates every ledger operation.

    Each public method takes the caller's external ``account_id``, resolves
    it to an active staff member first, and serialises work on one package
    (including its POD) through a per-package lock so that lock state is
    read and written within one atomic boundary in this process. The
    repositories' conditional writes close the same races across
    processes.
    """

    def __init__(
        self,
        *,
        staff: StaffRepository,
        packages: PackageRepository,
        pods: PodRepository,
        audit: AuditLogRepository,
        locations: LocationRepository,
        receivers: ReceiverRepository,
        config: PodLedgerConfig | None = None,
        notifier: ReceiverNotifier | None = None,
        renderer: PodDocumentRenderer | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.config = config or PodLedgerConfig()
        self.audit = AuditLog(
            audit, max_page_size=self.config.audit_max_page_size, clock=clock
        )
        self.identity = IdentityDirectory(staff, self.audit)
        self.locations = LocationDirectory(locations, self.audit)
        self.receivers = ReceiverDirectory(receivers, self.audit)
        self.packages = PackageRegistry(
            packages,
            pods,
            self.audit,
            self.locations,
            notifier=notifier,
            reference_attempts=self.config.package_reference_attempts,
            clock=clock,
        )
        self.pods = PodLedger(
            pods,
            packages,
            self.audit,
            notifier=notifier,
            renderer=renderer,
            sequence_scope=self.config.pod_sequence_scope,
            clock=clock,
        )
        self._package_locks = KeyedLock()

    # -- identity -----------------------------------------------------------

    async def resolve_caller(self, account_id: str) -> Caller:
        return await self.identity.resolve_caller(account_id)

    async def provision_admin(
        self, *, account_id: str, email: str, full_name: str
    ) -> Any:
        """Deployment-time bootstrap; not reachable from the request path."""
        return await self.identity.provision_admin(
            account_id=account_id, email=email, full_name=full_name
        )

    async def list_staff(
        self, account_id: str, *, include_inactive: bool = True
    ) -> list[Any]:
        await self.resolve_caller(account_id)
        return await self.identity.list_staff(include_inactive=include_inactive)

    async def get_staff(self, account_id: str, staff_id: str) -> Any:
        await self.resolve_caller(account_id)
        return await self.identity.get_staff(staff_id)

    async def create_staff(
        self,
        account_id: str,
        *,
        staff_account_id: str,
        email: str,
        full_name: str,
        role: StaffRole | str,
        phone: str | None = None,
    ) -> Any:
        caller = await self.resolve_caller(account_id)
        return await self.identity.create_staff(
            caller,
            account_id=staff_account_id,
            email=email,
            full_name=full_name,
            role=role,
            phone=phone,
        )

    async def update_staff(self, account_id: str, staff_id: str, **changes: Any) -> Any:
        caller = await self.resolve_caller(account_id)
        return await self.identity.update_staff(caller, staff_id, **changes)

    async def deactivate_staff(self, account_id: str, staff_id: str) -> Any:
        caller = await self.resolve_caller(account_id)
        return await self.identity.deactivate_staff(caller, staff_id)

    async def reactivate_staff(self, account_id: str, staff_id: str) -> Any:
        caller = await self.resolve_caller(account_id)
        return await self.identity.reactivate_staff(caller, staff_id)

    # -- delivery locations -------------------------------------------------

    async def list_locations(
        self, account_id: str, *, active_only: bool = False
    ) -> list[Any]:
        await self.resolve_caller(account_id)
        return await self.locations.list_locations(active_only=active_only)

    async def create_location(self, account_id: str, **fields: Any) -> Any:
        caller = await self.resolve_caller(account_id)
        return await self.locations.create_location(caller, **fields)

    async def update_location(
        self, account_id: str, location_id: str, **changes: Any
    ) -> Any:
        caller = await self.resolve_caller(account_id)
        return await self.locations.update_location(caller, location_id, **changes)

    # -- receivers ----------------------------------------------------------

    async def list_receivers(
        self, account_id: str, *, active_only: bool = False
    ) -> list[Any]:
        await self.resolve_caller(account_id)
        return await self.receivers.list_receivers(active_only=active_only)

    async def search_receivers(
        self, account_id: str, query: str, *, limit: int = 20
    ) -> list[Any]:
        await self.resolve_caller(account_id)
        return await self.receivers.search(query, limit=limit)

    async def get_receiver(self, account_id: str, receiver_id: str) -> Any:
        await self.resolve_caller(account_id)
        return await self.receivers.get(receiver_id)

    async def create_receiver(self, account_id: str, **fields: Any) -> Any:
        caller = await self.resolve_caller(account_id)
        return await self.receivers.create_receiver(caller, **fields)

    async def update_receiver(
        self, account_id: str, receiver_id: str, **changes: Any
    ) -> Any:
        caller = await self.resolve_caller(account_id)
        return await self.receivers.update_receiver(caller, receiver_id, **changes)

    async def set_receiver_active(
        self, account_id: str, receiver_id: str, is_active: bool
    ) -> Any:
        caller = await self.resolve_caller(account_id)
        return await self.receivers.set_active(caller, receiver_id, is_active)

    # -- packages -----------------------------------------------------------

    async def create_package(
        self,
        account_id: str,
        *,
        receiver_email: str,
        items: Iterable[Mapping[str, Any]],
        notes: str | None = None,
        po_number: str | None = None,
        delivery_location_id: str | None = None,
    ) -> Any:
        caller = await self.resolve_caller(account_id)
        return await self.packages.create_package(
            caller,
            receiver_email=receiver_email,
            items=items,
            notes=notes,
            po_number=po_number,
            delivery_location_id=delivery_location_id,
        )

    async def transition_package(
        self,
        account_id: str,
        package_id: str,
        transition: PackageTransition | str,
    ) -> Any:
        caller = await self.resolve_caller(account_id)
        async with self._package_locks.hold(package_id):
            return await self.packages.transition(caller, package_id, transition)

    async def update_package(
        self, account_id: str, package_id: str, **changes: Any
    ) -> Any:
        caller = await self.resolve_caller(account_id)
        async with self._package_locks.hold(package_id):
            return await self.packages.update_details(caller, package_id, **changes)

    async def get_package(self, account_id: str, package_id: str) -> Any:
        await self.resolve_caller(account_id)
        return await self.packages.get(package_id)

    async def get_package_by_reference(self, account_id: str, reference: str) -> Any:
        await self.resolve_caller(account_id)
        return await self.packages.get_by_reference(reference)

    async def list_packages(
        self,
        account_id: str,
        *,
        status: PackageStatus | str | None = None,
        search: str | None = None,
        offset: int = 0,
        limit: int = 50,
    ) -> PackagePage:
        await self.resolve_caller(account_id)
        return await self.packages.list(
            status=status, search=search, offset=offset, limit=limit
        )

    # -- PODs ---------------------------------------------------------------

    async def create_pod(
        self,
        account_id: str,
        *,
        package_id: str,
        signature_ref: str,
        signed_at: datetime,
        notes: str | None = None,
    ) -> Any:
        caller = await self.resolve_caller(account_id)
        async with self._package_locks.hold(package_id):
            return await self.pods.create_pod(
                caller,
                package_id=package_id,
                signature_ref=signature_ref,
                signed_at=signed_at,
                notes=notes,
            )

    async def attach_pod_document(
        self, account_id: str, pod_id: str, document_ref: str
    ) -> Any:
        caller = await self.resolve_caller(account_id)
        pod = await self.pods.get(pod_id)
        async with self._package_locks.hold(pod.package_id):
            return await self.pods.attach_document(caller, pod_id, document_ref)

    async def render_pod_document(self, account_id: str, pod_id: str) -> Any:
        caller = await self.resolve_caller(account_id)
        pod = await self.pods.get(pod_id)
        async with self._package_locks.hold(pod.package_id):
            return await self.pods.render_document(caller, pod_id)

    async def lock_pod(self, account_id: str, pod_id: str) -> Any:
        caller = await self.resolve_caller(account_id)
        pod = await self.pods.get(pod_id)
        async with self._package_locks.hold(pod.package_id):
            return await self.pods.lock(caller, pod_id)

    async def delete_pod(self, account_id: str, pod_id: str) -> None:
        caller = await self.resolve_caller(account_id)
        await self.pods.reject_deletion(caller, pod_id)

    async def get_pod(self, account_id: str, pod_id: str) -> Any:
        await self.resolve_caller(account_id)
        return await self.pods.get(pod_id)

    async def get_pod_for_package(self, account_id: str, package_id: str) -> Any:
        await self.resolve_caller(account_id)
        return await self.pods.get_by_package(package_id)

    async def get_pod_by_reference(self, account_id: str, reference: str) -> Any:
        await self.resolve_caller(account_id)
        return await self.pods.get_by_reference(reference)

    # -- audit --------------------------------------------------------------

    async def append_audit(
        self,
        account_id: str,
        *,
        action: str,
        entity_type: str,
        entity_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> Any:
        """Client-reported event (scans, downloads, ...) from active staff."""
        caller = await self.resolve_caller(account_id)
        return await self.audit.append(
            action,
            entity_type,
            entity_id,
            caller.staff_id,
            {**(metadata or {}), **caller.audit_context()},
        )

    async def query_audit(
        self, account_id: str, filters: AuditFilters | None = None
    ) -> AuditPage:
        await self.resolve_caller(account_id)
        return await self.audit.query(filters)

    async def entity_history(self, account_id: str, entity_id: str) -> list[Any]:
        await self.resolve_caller(account_id)
        return await self.audit.history(entity_id)
