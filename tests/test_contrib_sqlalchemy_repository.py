"""SQLAlchemy repository integration tests with real aiosqlite DB."""

from datetime import UTC, datetime

import pytest

from podledger.contrib.sqlalchemy.audit_store import SQLAlchemyAuditLogStore
from podledger.contrib.sqlalchemy.repository import (
    SQLAlchemyLocationRepository,
    SQLAlchemyPackageRepository,
    SQLAlchemyPodRepository,
    SQLAlchemyReceiverRepository,
    SQLAlchemyStaffRepository,
)
from podledger.exceptions import (
    AlreadyCollectedError,
    DuplicatePodError,
    InvalidTransitionError,
    NotFoundError,
)
from podledger.types import AuditFilters

NOW = datetime(2026, 3, 14, 12, 0, tzinfo=UTC)


@pytest.fixture()
def packages(async_session_factory) -> SQLAlchemyPackageRepository:
    return SQLAlchemyPackageRepository(async_session_factory)


@pytest.fixture()
def pods(async_session_factory) -> SQLAlchemyPodRepository:
    return SQLAlchemyPodRepository(async_session_factory)


async def _package(packages, reference: str, **fields):
    return await packages.create(
        items=[{"quantity": 1, "description": "Hard hat"}],
        reference=reference,
        receiver_email=fields.pop("receiver_email", "receiver@example.com"),
        created_by="staff-1",
        **fields,
    )


async def _record_pod(pods, package_id: str, *, scope: str = "global", at=NOW):
    return await pods.create_for_package(
        package_id=package_id,
        sequence_scope=scope,
        completed_at=at,
        staff_id="staff-9",
        staff_name="Cora Collection",
        staff_email="cora@example.com",
        signature_ref="signatures/abc.png",
        signed_at=at,
        notes=None,
    )


class TestStaffRepository:
    async def test_create_and_lookup(self, async_session_factory) -> None:
        repository = SQLAlchemyStaffRepository(async_session_factory)
        created = await repository.create(
            account_id="acct-1",
            email="a@example.com",
            full_name="Ada Admin",
            role="admin",
        )

        assert len(created.id) == 36
        assert (await repository.get_by_account_id("acct-1")).id == created.id
        assert (await repository.get_by_email("a@example.com")).id == created.id
        assert await repository.admin_exists() is True

    async def test_list_excludes_inactive_on_request(
        self, async_session_factory
    ) -> None:
        repository = SQLAlchemyStaffRepository(async_session_factory)
        await repository.create(
            account_id="a", email="a@example.com", full_name="Zed", role="driver"
        )
        await repository.create(
            account_id="b",
            email="b@example.com",
            full_name="Amy",
            role="driver",
            is_active=False,
        )

        everyone = await repository.list()
        active = await repository.list(include_inactive=False)

        assert [s.full_name for s in everyone] == ["Amy", "Zed"]
        assert [s.full_name for s in active] == ["Zed"]
        assert await repository.admin_exists() is False

    async def test_update_missing_raises(self, async_session_factory) -> None:
        repository = SQLAlchemyStaffRepository(async_session_factory)
        with pytest.raises(NotFoundError):
            await repository.update("nope", full_name="x")


class TestLocationRepository:
    async def test_get_by_name_is_case_insensitive(
        self, async_session_factory
    ) -> None:
        repository = SQLAlchemyLocationRepository(async_session_factory)
        created = await repository.create(name="Main Gate", address="1 Road")

        found = await repository.get_by_name("main gate")

        assert found.id == created.id

    async def test_active_only_filter(self, async_session_factory) -> None:
        repository = SQLAlchemyLocationRepository(async_session_factory)
        dock = await repository.create(name="Dock", address="2 Road")
        await repository.create(name="Annex", address="3 Road")
        await repository.update(dock.id, is_active=False)

        names = [loc.name for loc in await repository.list(active_only=True)]

        assert names == ["Annex"]


class TestReceiverRepository:
    async def test_lookups_and_ordering(self, async_session_factory) -> None:
        repository = SQLAlchemyReceiverRepository(async_session_factory)
        rita = await repository.create(
            name="Rita", surname="Zed", employee_number="E-1", email="rita@x.io"
        )
        await repository.create(
            name="Bo", surname="Aalto", employee_number="E-2", email="bo@x.io"
        )

        assert (await repository.get_by_email("rita@x.io")).id == rita.id
        assert (await repository.get_by_employee_number("E-1")).id == rita.id
        assert [r.surname for r in await repository.list()] == ["Aalto", "Zed"]

    async def test_search_skips_inactive(self, async_session_factory) -> None:
        repository = SQLAlchemyReceiverRepository(async_session_factory)
        rita = await repository.create(
            name="Rita", surname="Zed", employee_number="E-1", email="rita@x.io"
        )
        assert [r.id for r in await repository.search("ZE")] == [rita.id]

        await repository.update(rita.id, is_active=False)

        assert await repository.search("ze") == []

    async def test_update_missing_raises(self, async_session_factory) -> None:
        repository = SQLAlchemyReceiverRepository(async_session_factory)
        with pytest.raises(NotFoundError):
            await repository.update("missing", name="X")


class TestPackageRepository:
    async def test_create_keeps_item_order(self, packages) -> None:
        package = await packages.create(
            items=[
                {"quantity": 1, "description": "first"},
                {"quantity": 2, "description": "second"},
            ],
            reference="PKG-20260314-AAAA",
            receiver_email="r@example.com",
            created_by="staff-1",
        )

        assert [item.description for item in package.items] == ["first", "second"]
        assert [item.position for item in package.items] == [0, 1]
        assert await packages.reference_exists("PKG-20260314-AAAA") is True
        assert await packages.reference_exists("PKG-20260314-ZZZZ") is False

    async def test_list_search_matches_reference_email_and_po(
        self, packages
    ) -> None:
        await _package(packages, "PKG-20260314-AAAA", po_number="PO-7781")
        await _package(
            packages, "PKG-20260314-BBBB", receiver_email="site@acme.test"
        )
        await _package(packages, "PKG-20260314-CCCC")

        by_po, _ = await packages.list(search="7781")
        by_email, _ = await packages.list(search="ACME")
        by_ref, total = await packages.list(search="cccc")

        assert [p.reference for p in by_po] == ["PKG-20260314-AAAA"]
        assert [p.reference for p in by_email] == ["PKG-20260314-BBBB"]
        assert [p.reference for p in by_ref] == ["PKG-20260314-CCCC"]
        assert total == 1

    async def test_list_pages_and_counts(self, packages) -> None:
        for suffix in ("AAAA", "BBBB", "CCCC"):
            await _package(packages, f"PKG-20260314-{suffix}")

        page, total = await packages.list(offset=1, limit=1)

        assert total == 3
        assert len(page) == 1

    async def test_apply_transition_requires_source_status(self, packages) -> None:
        package = await _package(packages, "PKG-20260314-AAAA")

        moved = await packages.apply_transition(
            package.id,
            from_statuses=["pending"],
            to_status="in_transit",
            picked_up_by="staff-2",
        )
        again = await packages.apply_transition(
            package.id, from_statuses=["pending"], to_status="in_transit"
        )

        assert moved.status == "in_transit"
        assert moved.picked_up_by == "staff-2"
        assert again is None

    async def test_writes_refused_once_pod_is_locked(self, packages, pods) -> None:
        package = await _package(packages, "PKG-20260314-AAAA")
        pod, _ = await _record_pod(pods, package.id)
        assert await pods.mark_locked(pod.id, locked_at=NOW) is True

        assert await packages.update_details(package.id, notes="late") is None
        assert (
            await packages.apply_transition(
                package.id, from_statuses=["collected"], to_status="pending"
            )
            is None
        )
        assert (await packages.get_by_id(package.id)).notes is None


class TestPodRepository:
    async def test_create_collects_package(self, packages, pods) -> None:
        package = await _package(packages, "PKG-20260314-AAAA")

        pod, collected = await _record_pod(pods, package.id)

        assert pod.pod_reference == "POD-2026-0001"
        assert pod.package_reference == "PKG-20260314-AAAA"
        assert pod.is_locked is False
        assert collected.status == "collected"
        assert collected.pod_id == pod.id
        assert collected.collected_by == "staff-9"

    async def test_second_create_is_duplicate(self, packages, pods) -> None:
        package = await _package(packages, "PKG-20260314-AAAA")
        first, _ = await _record_pod(pods, package.id)

        with pytest.raises(DuplicatePodError) as exc_info:
            await _record_pod(pods, package.id)

        assert exc_info.value.context["pod_reference"] == first.pod_reference
        assert exc_info.value.context["is_locked"] is False

    async def test_missing_package_raises(self, pods) -> None:
        with pytest.raises(NotFoundError):
            await _record_pod(pods, "missing")

    async def test_collected_without_pod_is_already_collected(
        self, packages, pods
    ) -> None:
        package = await _package(packages, "PKG-20260314-AAAA")
        await packages.apply_transition(
            package.id, from_statuses=["pending"], to_status="collected"
        )

        with pytest.raises(AlreadyCollectedError):
            await _record_pod(pods, package.id)

    async def test_returned_package_cannot_get_pod(self, packages, pods) -> None:
        package = await _package(packages, "PKG-20260314-AAAA")
        await packages.apply_transition(
            package.id, from_statuses=["pending"], to_status="returned"
        )

        with pytest.raises(InvalidTransitionError):
            await _record_pod(pods, package.id)

    async def test_global_sequence_continues_across_years(
        self, packages, pods
    ) -> None:
        first = await _package(packages, "PKG-20261231-AAAA")
        second = await _package(packages, "PKG-20270101-BBBB")

        pod_a, _ = await _record_pod(pods, first.id, at=NOW)
        pod_b, _ = await _record_pod(
            pods, second.id, at=datetime(2027, 1, 1, 8, 0, tzinfo=UTC)
        )

        assert pod_a.pod_reference == "POD-2026-0001"
        assert pod_b.pod_reference == "POD-2027-0002"

    async def test_yearly_sequence_restarts(self, packages, pods) -> None:
        first = await _package(packages, "PKG-20261231-AAAA")
        second = await _package(packages, "PKG-20270101-BBBB")

        pod_a, _ = await _record_pod(pods, first.id, scope="2026", at=NOW)
        pod_b, _ = await _record_pod(
            pods,
            second.id,
            scope="2027",
            at=datetime(2027, 1, 1, 8, 0, tzinfo=UTC),
        )

        assert pod_a.pod_reference == "POD-2026-0001"
        assert pod_b.pod_reference == "POD-2027-0001"

    async def test_mark_locked_is_compare_and_set(self, packages, pods) -> None:
        package = await _package(packages, "PKG-20260314-AAAA")
        pod, _ = await _record_pod(pods, package.id)

        assert await pods.mark_locked(pod.id, locked_at=NOW) is True
        assert await pods.mark_locked(pod.id, locked_at=NOW) is False

        stored = await pods.get_by_reference(pod.pod_reference)
        assert stored.is_locked is True
        assert stored.locked_at == NOW

    async def test_attach_document_refused_after_lock(self, packages, pods) -> None:
        package = await _package(packages, "PKG-20260314-AAAA")
        pod, _ = await _record_pod(pods, package.id)

        attached = await pods.attach_document(
            pod.id, document_ref="docs/a.pdf", generated_at=NOW
        )
        await pods.mark_locked(pod.id, locked_at=NOW)
        refused = await pods.attach_document(
            pod.id, document_ref="docs/b.pdf", generated_at=NOW
        )

        assert attached.document_ref == "docs/a.pdf"
        assert refused is None
        assert (await pods.get_by_id(pod.id)).document_ref == "docs/a.pdf"


class TestAuditStore:
    async def test_query_filters_and_orders_newest_first(
        self, async_session_factory
    ) -> None:
        store = SQLAlchemyAuditLogStore(async_session_factory)
        for minute, action in enumerate(["created", "updated", "created"]):
            await store.add(
                action=action,
                entity_type="package",
                entity_id="pkg-1",
                performed_by="staff-1",
                metadata={"n": minute},
                created_at=NOW.replace(minute=minute),
            )

        entries, total = await store.query(AuditFilters(action="created"))

        assert total == 2
        assert [e.metadata_["n"] for e in entries] == [2, 0]

    async def test_since_and_until_are_inclusive(self, async_session_factory) -> None:
        store = SQLAlchemyAuditLogStore(async_session_factory)
        for minute in range(3):
            await store.add(
                action="created",
                entity_type="package",
                entity_id="pkg-1",
                performed_by="staff-1",
                metadata={},
                created_at=NOW.replace(minute=minute),
            )

        _, total = await store.query(
            AuditFilters(since=NOW.replace(minute=1), until=NOW.replace(minute=2))
        )
        history = await store.list_for_entity("pkg-1")

        assert total == 2
        assert [e.created_at.minute for e in history] == [0, 1, 2]
