"""Once a POD is locked, neither it nor its package can change again."""

from __future__ import annotations

from datetime import UTC

import pytest

from conftest import ADMIN, COLLECTION, create_package, create_pod, ready_package
from podledger.enums import AuditAction, PackageTransition
from podledger.exceptions import AlreadyLockedError, LockedError
from podledger.types import AuditFilters


@pytest.fixture()
async def locked(ledger, staff):
    package = await ready_package(ledger)
    pod = await create_pod(ledger, package.id)
    pod = await ledger.lock_pod(COLLECTION, pod.id)
    return package, pod


async def test_attach_document_after_lock_is_locked(ledger, locked):
    _, pod = locked

    with pytest.raises(LockedError) as exc_info:
        await ledger.attach_pod_document(ADMIN, pod.id, "late.pdf")

    assert exc_info.value.context["pod_reference"] == pod.pod_reference
    assert exc_info.value.context["locked_at"] == pod.locked_at
    assert exc_info.value.context["locked_at"].tzinfo is UTC
    assert (await ledger.get_pod(ADMIN, pod.id)).document_ref is None


@pytest.mark.parametrize("transition", list(PackageTransition))
async def test_package_transitions_after_lock_are_locked(
    ledger, locked, transition
):
    package, pod = locked

    with pytest.raises(LockedError) as exc_info:
        await ledger.transition_package(ADMIN, package.id, transition)

    assert exc_info.value.context["package_reference"] == package.reference
    assert exc_info.value.context["pod_reference"] == pod.pod_reference


async def test_package_edit_after_lock_is_locked(ledger, locked):
    package, _ = locked

    with pytest.raises(LockedError):
        await ledger.update_package(ADMIN, package.id, notes="rewrite history")

    assert (await ledger.get_package(ADMIN, package.id)).notes is None


async def test_relock_is_already_locked(ledger, locked):
    _, pod = locked
    with pytest.raises(AlreadyLockedError):
        await ledger.lock_pod(ADMIN, pod.id)
    assert (await ledger.get_pod(ADMIN, pod.id)).is_locked is True


async def test_every_rejection_is_audited(ledger, locked):
    package, pod = locked

    for attempt in (
        ledger.attach_pod_document(ADMIN, pod.id, "x.pdf"),
        ledger.update_package(ADMIN, package.id, notes="x"),
        ledger.transition_package(ADMIN, package.id, PackageTransition.COLLECT),
    ):
        with pytest.raises(LockedError):
            await attempt

    modification = await ledger.query_audit(
        ADMIN, AuditFilters(action=AuditAction.POD_MODIFICATION_DENIED)
    )
    package_denied = await ledger.query_audit(
        ADMIN, AuditFilters(action=AuditAction.PACKAGE_UPDATE_DENIED)
    )
    assert modification.total == 1
    assert package_denied.total == 2


async def test_unrelated_packages_stay_editable(ledger, locked):
    other = await create_package(ledger)
    updated = await ledger.update_package(ADMIN, other.id, notes="still open")
    assert updated.notes == "still open"


async def test_lock_is_checked_before_the_transition_name(ledger, locked):
    package, pod = locked

    with pytest.raises(LockedError):
        await ledger.transition_package(ADMIN, package.id, "bogus")

    denied = await ledger.query_audit(
        ADMIN, AuditFilters(action=AuditAction.PACKAGE_UPDATE_DENIED)
    )
    assert denied.total == 1
    assert denied.entries[0].metadata_["attempted_changes"] == {
        "transition": "bogus"
    }
    assert denied.entries[0].metadata_["pod_reference"] == pod.pod_reference
