"""Persistence seams and external collaborators of the ledger.

Repositories return plain records (any object exposing the attributes
named in the docstrings); the SQLAlchemy contrib package ships the
reference implementation.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from podledger.types import AuditFilters, PackageItemInfo


@runtime_checkable
class StaffRepository(Protocol):
    """Staff profiles keyed by id and by external account id."""

    async def get_by_id(self, staff_id: str) -> Any | None: ...

    async def get_by_account_id(self, account_id: str) -> Any | None: ...

    async def get_by_email(self, email: str) -> Any | None: ...

    async def admin_exists(self) -> bool: ...

    async def list(self, *, include_inactive: bool = True) -> list[Any]: ...

    async def create(self, **fields: Any) -> Any: ...

    async def update(self, staff_id: str, **fields: Any) -> Any: ...


@runtime_checkable
class PackageRepository(Protocol):
    """Package records and their status field."""

    async def get_by_id(self, package_id: str) -> Any | None: ...

    async def get_by_reference(self, reference: str) -> Any | None: ...

    async def reference_exists(self, reference: str) -> bool: ...

    async def create(
        self, *, items: Sequence[PackageItemInfo], **fields: Any
    ) -> Any: ...

    async def list(
        self,
        *,
        status: str | None = None,
        search: str | None = None,
        offset: int = 0,
        limit: int = 50,
    ) -> tuple[list[Any], int]: ...

    async def apply_transition(
        self,
        package_id: str,
        *,
        from_statuses: Sequence[str],
        to_status: str,
        **fields: Any,
    ) -> Any | None:
        """Move the package to ``to_status`` in one conditional write.

        Returns None (and writes nothing) unless the current status is one
        of ``from_statuses`` and no locked POD exists for the package.
        """
        ...

    async def update_details(self, package_id: str, **fields: Any) -> Any | None:
        """Update detail fields unless the package has a locked POD."""
        ...


@runtime_checkable
class PodRepository(Protocol):
    """Proof-of-delivery records. There is deliberately no delete."""

    async def get_by_id(self, pod_id: str) -> Any | None: ...

    async def get_by_package_id(self, package_id: str) -> Any | None: ...

    async def get_by_reference(self, reference: str) -> Any | None: ...

    async def create_for_package(
        self,
        *,
        package_id: str,
        sequence_scope: str,
        completed_at: datetime,
        **fields: Any,
    ) -> tuple[Any, Any]:
        """Insert the POD and mark its package collected atomically.

        Returns ``(pod, package)``. Raises NotFoundError,
        DuplicatePodError, AlreadyCollectedError or InvalidTransitionError
        without writing anything.
        """
        ...

    async def attach_document(
        self, pod_id: str, *, document_ref: str, generated_at: datetime
    ) -> Any | None:
        """Returns None when the POD is (or just became) locked."""
        ...

    async def mark_locked(self, pod_id: str, *, locked_at: datetime) -> bool:
        """Compare-and-set ``is_locked`` from false to true."""
        ...


@runtime_checkable
class AuditLogRepository(Protocol):
    """Append-only storage for audit entries. No update, no delete."""

    async def add(
        self,
        *,
        action: str,
        entity_type: str,
        entity_id: str,
        performed_by: str,
        metadata: dict[str, Any],
        created_at: datetime,
    ) -> Any: ...

    async def query(self, filters: AuditFilters) -> tuple[list[Any], int]: ...

    async def list_for_entity(self, entity_id: str) -> list[Any]: ...


@runtime_checkable
class LocationRepository(Protocol):
    async def get_by_id(self, location_id: str) -> Any | None: ...

    async def get_by_name(self, name: str) -> Any | None: ...

    async def list(self, *, active_only: bool = False) -> list[Any]: ...

    async def create(self, **fields: Any) -> Any: ...

    async def update(self, location_id: str, **fields: Any) -> Any: ...


@runtime_checkable
class ReceiverRepository(Protocol):
    """Receiver profiles. Records expose ``full_name`` as name + surname."""

    async def get_by_id(self, receiver_id: str) -> Any | None: ...

    async def get_by_email(self, email: str) -> Any | None: ...

    async def get_by_employee_number(self, employee_number: str) -> Any | None: ...

    async def list(self, *, active_only: bool = False) -> list[Any]: ...

    async def search(self, query: str, *, limit: int = 20) -> list[Any]:
        """Active receivers whose name, surname, employee number or email
        contains ``query``, case-insensitively."""
        ...

    async def create(self, **fields: Any) -> Any: ...

    async def update(self, receiver_id: str, **fields: Any) -> Any: ...


@runtime_checkable
class ReceiverNotifier(Protocol):
    """Notification channel towards package receivers.

    Every method returns True when delivery was confirmed. Failures are
    advisory and never roll back the operation that triggered them.
    """

    async def notify_package_created(self, package: Any) -> bool: ...

    async def notify_in_transit(self, package: Any) -> bool: ...

    async def notify_pod_completed(self, pod: Any, package: Any) -> bool: ...


@runtime_checkable
class PodDocumentRenderer(Protocol):
    """Renders a POD + package snapshot and returns a stored document ref."""

    async def render(self, pod: Any, package: Any) -> str: ...
