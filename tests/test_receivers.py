"""Receiver directory tests."""

from __future__ import annotations

import pytest

from conftest import ADMIN, DRIVER, INACTIVE, WAREHOUSE
from podledger.enums import AuditAction
from podledger.exceptions import (
    DeactivatedError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from podledger.types import AuditFilters


async def _receiver(ledger, **overrides):
    fields = {
        "name": "Rita",
        "surname": "Receiver",
        "employee_number": "E-1001",
        "email": "Rita.Receiver@Example.com",
    }
    fields.update(overrides)
    return await ledger.create_receiver(ADMIN, **fields)


class TestCreate:
    async def test_admin_creates_normalised_profile(self, ledger, staff):
        receiver = await _receiver(ledger, phone="  ", name="  Rita ")

        assert receiver.name == "Rita"
        assert receiver.email == "rita.receiver@example.com"
        assert receiver.phone is None
        assert receiver.is_active is True
        assert receiver.full_name == "Rita Receiver"
        assert receiver.created_by == staff["admin"].staff_id

        history = await ledger.entity_history(ADMIN, receiver.id)
        assert [e.action for e in history] == [AuditAction.RECEIVER_CREATED]

    async def test_non_admin_is_forbidden_and_audited(self, ledger, staff):
        with pytest.raises(ForbiddenError):
            await ledger.create_receiver(
                WAREHOUSE,
                name="Rita",
                surname="Receiver",
                employee_number="E-1001",
                email="rita@example.com",
            )

        denied = await ledger.query_audit(
            ADMIN, AuditFilters(action=AuditAction.RECEIVER_MODIFICATION_DENIED)
        )
        assert denied.total == 1
        assert await ledger.list_receivers(ADMIN) == []

    async def test_deactivated_staff_cannot_create(self, ledger, staff):
        with pytest.raises(DeactivatedError):
            await ledger.create_receiver(
                INACTIVE,
                name="Rita",
                surname="Receiver",
                employee_number="E-1001",
                email="rita@example.com",
            )

    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"name": "R"}, "name"),
            ({"surname": " "}, "surname"),
            ({"employee_number": ""}, "employee_number"),
            ({"email": "not-an-email"}, "email"),
        ],
    )
    async def test_invalid_input(self, ledger, staff, overrides, field):
        with pytest.raises(ValidationError) as exc_info:
            await _receiver(ledger, **overrides)
        assert exc_info.value.context["field"] == field

    async def test_employee_number_and_email_are_unique(self, ledger, staff):
        await _receiver(ledger)

        with pytest.raises(ValidationError) as by_number:
            await _receiver(ledger, email="other@example.com")
        with pytest.raises(ValidationError) as by_email:
            await _receiver(
                ledger, employee_number="E-2002", email="rita.receiver@example.com"
            )

        assert by_number.value.context["field"] == "employee_number"
        assert by_email.value.context["field"] == "email"


class TestUpdate:
    async def test_records_changes_and_previous_values(self, ledger, staff):
        receiver = await _receiver(ledger)

        updated = await ledger.update_receiver(
            ADMIN, receiver.id, surname="Collector", phone="+48 500 100 200"
        )

        assert updated.full_name == "Rita Collector"
        entry = (await ledger.entity_history(ADMIN, receiver.id))[-1]
        assert entry.action == AuditAction.RECEIVER_UPDATED
        assert entry.metadata_["changes"] == {
            "surname": "Collector",
            "phone": "+48 500 100 200",
        }
        assert entry.metadata_["previous"]["surname"] == "Receiver"

    async def test_unchanged_values_write_nothing(self, ledger, staff):
        receiver = await _receiver(ledger)

        await ledger.update_receiver(ADMIN, receiver.id, name="Rita")

        assert len(await ledger.entity_history(ADMIN, receiver.id)) == 1

    async def test_cannot_take_another_employee_number(self, ledger, staff):
        await _receiver(ledger)
        other = await _receiver(
            ledger, employee_number="E-2002", email="other@example.com"
        )

        with pytest.raises(ValidationError):
            await ledger.update_receiver(ADMIN, other.id, employee_number="E-1001")

    async def test_missing_receiver(self, ledger, staff):
        with pytest.raises(NotFoundError):
            await ledger.update_receiver(ADMIN, "missing", name="Rita")

    async def test_driver_cannot_update(self, ledger, staff):
        receiver = await _receiver(ledger)
        with pytest.raises(ForbiddenError):
            await ledger.update_receiver(DRIVER, receiver.id, name="Mallory")


class TestActivation:
    async def test_deactivate_then_reactivate(self, ledger, staff):
        receiver = await _receiver(ledger)

        off = await ledger.set_receiver_active(ADMIN, receiver.id, False)
        again = await ledger.set_receiver_active(ADMIN, receiver.id, False)
        on = await ledger.set_receiver_active(ADMIN, receiver.id, True)

        assert off.is_active is False
        assert again.is_active is False
        assert on.is_active is True
        history = await ledger.entity_history(ADMIN, receiver.id)
        assert [e.action for e in history] == [
            AuditAction.RECEIVER_CREATED,
            AuditAction.RECEIVER_DEACTIVATED,
            AuditAction.RECEIVER_REACTIVATED,
        ]

    async def test_list_active_only(self, ledger, staff):
        kept = await _receiver(ledger)
        gone = await _receiver(
            ledger, employee_number="E-2002", email="gone@example.com"
        )
        await ledger.set_receiver_active(ADMIN, gone.id, False)

        active = await ledger.list_receivers(WAREHOUSE, active_only=True)
        everyone = await ledger.list_receivers(WAREHOUSE)

        assert [r.id for r in active] == [kept.id]
        assert len(everyone) == 2


class TestSearch:
    async def test_matches_any_field_case_insensitively(self, ledger, staff):
        rita = await _receiver(ledger)
        await _receiver(
            ledger,
            name="Bruno",
            surname="Aalto",
            employee_number="E-2002",
            email="bruno@example.com",
        )

        assert [r.id for r in await ledger.search_receivers(DRIVER, "rIT")] == [
            rita.id
        ]
        assert [r.id for r in await ledger.search_receivers(DRIVER, "1001")] == [
            rita.id
        ]
        by_domain = await ledger.search_receivers(DRIVER, "example.com")
        assert [r.surname for r in by_domain] == ["Aalto", "Receiver"]

    async def test_inactive_receivers_are_not_found(self, ledger, staff):
        receiver = await _receiver(ledger)
        await ledger.set_receiver_active(ADMIN, receiver.id, False)

        assert await ledger.search_receivers(DRIVER, "Rita") == []

    async def test_limit(self, ledger, staff):
        for n in range(3):
            await _receiver(
                ledger, employee_number=f"E-{n}", email=f"r{n}@example.com"
            )

        assert len(await ledger.search_receivers(DRIVER, "", limit=2)) == 2
        with pytest.raises(ValidationError):
            await ledger.search_receivers(DRIVER, "", limit=0)
