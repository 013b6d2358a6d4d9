"""Directory of employees who may collect packages."""

from __future__ import annotations

import logging
from typing import Any

from podledger.audit import AuditLog
from podledger.enums import AuditAction, EntityType
from podledger.exceptions import ForbiddenError, NotFoundError, ValidationError
from podledger.protocols import ReceiverRepository
from podledger.types import Caller
from podledger.validation import normalize_email, optional_text, require_text

logger = logging.getLogger(__name__)

MAX_SEARCH_RESULTS = 50


def _person_name(value: Any, field: str) -> str:
    value = require_text(value, field)
    if len(value) < 2:
        raise ValidationError(
            f"{field} must be at least 2 characters long", field=field
        )
    return value


class ReceiverDirectory:
    """Admin-managed receiver profiles.

    Receivers are not staff and never sign in; the directory exists so
    staff can pick the collecting employee by name or employee number.
    Profiles are deactivated rather than deleted.
    """

    def __init__(self, repository: ReceiverRepository, audit: AuditLog) -> None:
        self.repository = repository
        self.audit = audit

    async def get(self, receiver_id: str) -> Any:
        receiver = await self.repository.get_by_id(receiver_id)
        if receiver is None:
            raise NotFoundError(EntityType.RECEIVER, receiver_id)
        return receiver

    async def list_receivers(self, *, active_only: bool = False) -> list[Any]:
        return await self.repository.list(active_only=active_only)

    async def search(self, query: str, *, limit: int = 20) -> list[Any]:
        """Active receivers matching ``query``, ordered by surname."""
        if not 1 <= limit <= MAX_SEARCH_RESULTS:
            raise ValidationError(
                f"limit must be between 1 and {MAX_SEARCH_RESULTS}", field="limit"
            )
        return await self.repository.search((query or "").strip(), limit=limit)

    async def create_receiver(
        self,
        caller: Caller,
        *,
        name: str,
        surname: str,
        employee_number: str,
        email: str,
        phone: str | None = None,
    ) -> Any:
        await self._require_admin(caller, employee_number or "<new>", "create")
        fields = {
            "name": _person_name(name, "name"),
            "surname": _person_name(surname, "surname"),
            "employee_number": require_text(employee_number, "employee_number"),
            "email": normalize_email(email),
            "phone": optional_text(phone),
        }
        await self._check_unique(fields)
        receiver = await self.repository.create(
            **fields, is_active=True, created_by=caller.staff_id
        )
        await self.audit.append(
            AuditAction.RECEIVER_CREATED,
            EntityType.RECEIVER,
            receiver.id,
            caller.staff_id,
            {
                "employee_number": receiver.employee_number,
                "email": receiver.email,
                **caller.audit_context(),
            },
        )
        logger.info(
            "Receiver %s created by %s", receiver.employee_number, caller.staff_id
        )
        return receiver

    async def update_receiver(
        self,
        caller: Caller,
        receiver_id: str,
        *,
        name: str | None = None,
        surname: str | None = None,
        employee_number: str | None = None,
        email: str | None = None,
        phone: str | None = None,
    ) -> Any:
        await self._require_admin(caller, receiver_id, "update")
        receiver = await self.get(receiver_id)

        changes: dict[str, Any] = {}
        if name is not None:
            changes["name"] = _person_name(name, "name")
        if surname is not None:
            changes["surname"] = _person_name(surname, "surname")
        if employee_number is not None:
            changes["employee_number"] = require_text(
                employee_number, "employee_number"
            )
        if email is not None:
            changes["email"] = normalize_email(email)
        if phone is not None:
            changes["phone"] = optional_text(phone)
        changes = {
            key: value
            for key, value in changes.items()
            if getattr(receiver, key) != value
        }
        if not changes:
            return receiver
        await self._check_unique(changes, receiver_id=receiver_id)

        previous = {key: getattr(receiver, key) for key in changes}
        updated = await self.repository.update(receiver_id, **changes)
        await self.audit.append(
            AuditAction.RECEIVER_UPDATED,
            EntityType.RECEIVER,
            receiver_id,
            caller.staff_id,
            {"changes": changes, "previous": previous, **caller.audit_context()},
        )
        return updated

    async def set_active(
        self, caller: Caller, receiver_id: str, is_active: bool
    ) -> Any:
        await self._require_admin(
            caller, receiver_id, "reactivate" if is_active else "deactivate"
        )
        receiver = await self.get(receiver_id)
        if receiver.is_active == is_active:
            return receiver
        updated = await self.repository.update(receiver_id, is_active=is_active)
        await self.audit.append(
            AuditAction.RECEIVER_REACTIVATED
            if is_active
            else AuditAction.RECEIVER_DEACTIVATED,
            EntityType.RECEIVER,
            receiver_id,
            caller.staff_id,
            {
                "employee_number": receiver.employee_number,
                **caller.audit_context(),
            },
        )
        return updated

    async def _check_unique(
        self, fields: dict[str, Any], *, receiver_id: str | None = None
    ) -> None:
        if "employee_number" in fields:
            other = await self.repository.get_by_employee_number(
                fields["employee_number"]
            )
            if other is not None and other.id != receiver_id:
                raise ValidationError(
                    "An employee with this employee number already exists",
                    field="employee_number",
                )
        if "email" in fields:
            other = await self.repository.get_by_email(fields["email"])
            if other is not None and other.id != receiver_id:
                raise ValidationError(
                    "An employee with this email already exists",
                    field="email",
                )

    async def _require_admin(
        self, caller: Caller, entity_id: str, attempted: str
    ) -> None:
        if caller.is_admin:
            return
        await self.audit.append(
            AuditAction.RECEIVER_MODIFICATION_DENIED,
            EntityType.RECEIVER,
            entity_id,
            caller.staff_id,
            {"attempted": attempted, **caller.audit_context()},
        )
        logger.warning(
            "Denied receiver %s on %s by %s", attempted, entity_id, caller.staff_id
        )
        raise ForbiddenError(
            "Only administrators can manage receivers",
            role=str(caller.role),
        )
