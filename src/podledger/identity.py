"""Staff identities and role resolution."""

from __future__ import annotations

import logging
from typing import Any

from podledger.audit import AuditLog
from podledger.enums import AuditAction, EntityType, StaffRole
from podledger.exceptions import (
    DeactivatedError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from podledger.protocols import StaffRepository
from podledger.types import Caller
from podledger.validation import normalize_email, optional_text, require_text

logger = logging.getLogger(__name__)


def _parse_role(role: Any) -> StaffRole:
    try:
        return StaffRole(role)
    except ValueError as exc:
        raise ValidationError(
            f"Unknown role {role!r}",
            field="role",
            allowed=[r.value for r in StaffRole],
        ) from exc


def caller_from_profile(profile: Any) -> Caller:
    return Caller(
        staff_id=profile.id,
        account_id=profile.account_id,
        role=StaffRole(profile.role),
        full_name=profile.full_name,
        email=profile.email,
        is_active=profile.is_active,
    )


class IdentityDirectory:
    """Resolves callers and manages staff profiles.

    Profiles are never deleted: deactivation flips ``is_active`` so the
    audit history stays attributable.
    """

    def __init__(self, repository: StaffRepository, audit: AuditLog) -> None:
        self.repository = repository
        self.audit = audit

    async def resolve_caller(self, account_id: str) -> Caller:
        """Look up the profile bound to an external account id.

        Raises NotFoundError when no profile exists and DeactivatedError
        when it exists but is soft-disabled.
        """
        if not account_id:
            raise NotFoundError(EntityType.STAFF, "<anonymous>")
        profile = await self.repository.get_by_account_id(account_id)
        if profile is None:
            raise NotFoundError(EntityType.STAFF, account_id)
        if not profile.is_active:
            raise DeactivatedError(
                "Staff account is deactivated",
                staff_id=profile.id,
            )
        return caller_from_profile(profile)

    async def get_staff(self, staff_id: str) -> Any:
        profile = await self.repository.get_by_id(staff_id)
        if profile is None:
            raise NotFoundError(EntityType.STAFF, staff_id)
        return profile

    async def list_staff(self, *, include_inactive: bool = True) -> list[Any]:
        return await self.repository.list(include_inactive=include_inactive)

    async def provision_admin(
        self, *, account_id: str, email: str, full_name: str
    ) -> Any:
        """One-time bootstrap of the first administrator.

        Runs at deployment time; refuses once any admin profile exists.
        """
        if await self.repository.admin_exists():
            raise ForbiddenError("An administrator has already been provisioned")
        profile = await self._insert(
            account_id=account_id,
            email=email,
            full_name=full_name,
            role=StaffRole.ADMIN,
            phone=None,
            created_by=None,
        )
        await self.audit.append(
            AuditAction.STAFF_CREATED,
            EntityType.STAFF,
            profile.id,
            profile.id,
            {"email": profile.email, "role": profile.role, "bootstrap": True},
        )
        logger.info("Provisioned initial administrator %s", profile.email)
        return profile

    async def create_staff(
        self,
        caller: Caller,
        *,
        account_id: str,
        email: str,
        full_name: str,
        role: StaffRole | str,
        phone: str | None = None,
    ) -> Any:
        await self._require_admin(caller, account_id or "<new>", "create")
        profile = await self._insert(
            account_id=account_id,
            email=email,
            full_name=full_name,
            role=_parse_role(role),
            phone=phone,
            created_by=caller.staff_id,
        )
        await self.audit.append(
            AuditAction.STAFF_CREATED,
            EntityType.STAFF,
            profile.id,
            caller.staff_id,
            {
                "email": profile.email,
                "full_name": profile.full_name,
                "role": profile.role,
                **caller.audit_context(),
            },
        )
        logger.info("Staff %s created by %s", profile.email, caller.staff_id)
        return profile

    async def update_staff(
        self,
        caller: Caller,
        staff_id: str,
        *,
        full_name: str | None = None,
        role: StaffRole | str | None = None,
        phone: str | None = None,
    ) -> Any:
        await self._require_admin(caller, staff_id, "update")
        profile = await self.get_staff(staff_id)

        changes: dict[str, Any] = {}
        if full_name is not None:
            changes["full_name"] = require_text(full_name, "full_name")
        if role is not None:
            new_role = _parse_role(role)
            if caller.staff_id == staff_id and new_role != StaffRole.ADMIN:
                raise ValidationError("Administrators cannot demote themselves")
            changes["role"] = new_role.value
        if phone is not None:
            changes["phone"] = optional_text(phone)
        changes = {
            key: value
            for key, value in changes.items()
            if getattr(profile, key) != value
        }
        if not changes:
            return profile

        previous = {key: getattr(profile, key) for key in changes}
        updated = await self.repository.update(staff_id, **changes)
        await self.audit.append(
            AuditAction.STAFF_UPDATED,
            EntityType.STAFF,
            staff_id,
            caller.staff_id,
            {"changes": changes, "previous": previous, **caller.audit_context()},
        )
        return updated

    async def deactivate_staff(self, caller: Caller, staff_id: str) -> Any:
        await self._require_admin(caller, staff_id, "deactivate")
        if caller.staff_id == staff_id:
            raise ValidationError("Administrators cannot deactivate themselves")
        return await self._set_active(
            caller, staff_id, False, AuditAction.STAFF_DEACTIVATED
        )

    async def reactivate_staff(self, caller: Caller, staff_id: str) -> Any:
        await self._require_admin(caller, staff_id, "reactivate")
        return await self._set_active(
            caller, staff_id, True, AuditAction.STAFF_REACTIVATED
        )

    async def _set_active(
        self,
        caller: Caller,
        staff_id: str,
        is_active: bool,
        action: AuditAction,
    ) -> Any:
        profile = await self.get_staff(staff_id)
        if profile.is_active == is_active:
            return profile
        updated = await self.repository.update(staff_id, is_active=is_active)
        await self.audit.append(
            action,
            EntityType.STAFF,
            staff_id,
            caller.staff_id,
            {"email": profile.email, **caller.audit_context()},
        )
        logger.info("Staff %s %s by %s", staff_id, action, caller.staff_id)
        return updated

    async def _insert(
        self,
        *,
        account_id: str,
        email: str,
        full_name: str,
        role: StaffRole,
        phone: str | None,
        created_by: str | None,
    ) -> Any:
        account_id = require_text(account_id, "account_id")
        email = normalize_email(email)
        full_name = require_text(full_name, "full_name")
        if await self.repository.get_by_account_id(account_id) is not None:
            raise ValidationError(
                "A staff profile already exists for this account",
                field="account_id",
            )
        if await self.repository.get_by_email(email) is not None:
            raise ValidationError(
                "A staff profile already exists with this email",
                field="email",
            )
        return await self.repository.create(
            account_id=account_id,
            email=email,
            full_name=full_name,
            role=role.value,
            phone=optional_text(phone),
            is_active=True,
            created_by=created_by,
        )

    async def _require_admin(
        self, caller: Caller, entity_id: str, attempted: str
    ) -> None:
        if caller.is_admin:
            return
        await self.audit.append(
            AuditAction.STAFF_MODIFICATION_DENIED,
            EntityType.STAFF,
            entity_id,
            caller.staff_id,
            {
                "attempted": attempted,
                "reason": "Only administrators can manage staff",
                **caller.audit_context(),
            },
        )
        logger.warning(
            "Denied staff %s on %s by %s (%s)",
            attempted,
            entity_id,
            caller.staff_id,
            caller.role,
        )
        raise ForbiddenError(
            "Only administrators can manage staff",
            role=str(caller.role),
        )
