"""Protocol conformance tests."""

from __future__ import annotations

from conftest import RecordingNotifier, StaticRenderer
from podledger.contrib.sqlalchemy.audit_store import SQLAlchemyAuditLogStore
from podledger.contrib.sqlalchemy.repository import (
    SQLAlchemyLocationRepository,
    SQLAlchemyPackageRepository,
    SQLAlchemyPodRepository,
    SQLAlchemyReceiverRepository,
    SQLAlchemyStaffRepository,
)
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


async def test_sqlalchemy_repositories_satisfy_protocols(
    async_session_factory,
) -> None:
    assert isinstance(
        SQLAlchemyStaffRepository(async_session_factory), StaffRepository
    )
    assert isinstance(
        SQLAlchemyPackageRepository(async_session_factory), PackageRepository
    )
    assert isinstance(SQLAlchemyPodRepository(async_session_factory), PodRepository)
    assert isinstance(
        SQLAlchemyAuditLogStore(async_session_factory), AuditLogRepository
    )
    assert isinstance(
        SQLAlchemyLocationRepository(async_session_factory), LocationRepository
    )
    assert isinstance(
        SQLAlchemyReceiverRepository(async_session_factory), ReceiverRepository
    )


async def test_pod_repository_has_no_delete(async_session_factory) -> None:
    repository = SQLAlchemyPodRepository(async_session_factory)
    assert not hasattr(repository, "delete")


async def test_audit_store_is_append_only(async_session_factory) -> None:
    store = SQLAlchemyAuditLogStore(async_session_factory)
    assert not hasattr(store, "update")
    assert not hasattr(store, "delete")


def test_test_doubles_satisfy_collaborator_protocols() -> None:
    assert isinstance(RecordingNotifier(), ReceiverNotifier)
    assert isinstance(StaticRenderer(), PodDocumentRenderer)


def test_incomplete_notifier_is_rejected() -> None:
    class OnlyCreated:
        async def notify_package_created(self, package) -> bool:
            return True

    assert not isinstance(OnlyCreated(), ReceiverNotifier)
