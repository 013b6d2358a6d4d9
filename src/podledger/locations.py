"""Delivery locations packages can be routed to."""

from __future__ import annotations

from typing import Any

from podledger.audit import AuditLog
from podledger.enums import AuditAction, EntityType
from podledger.exceptions import ForbiddenError, NotFoundError, ValidationError
from podledger.protocols import LocationRepository
from podledger.types import Caller
from podledger.validation import optional_text, require_text


class LocationDirectory:
    """Admin-managed list of delivery locations."""

    def __init__(self, repository: LocationRepository, audit: AuditLog) -> None:
        self.repository = repository
        self.audit = audit

    async def get(self, location_id: str) -> Any:
        location = await self.repository.get_by_id(location_id)
        if location is None:
            raise NotFoundError(EntityType.DELIVERY_LOCATION, location_id)
        return location

    async def list_locations(self, *, active_only: bool = False) -> list[Any]:
        return await self.repository.list(active_only=active_only)

    async def require_active(self, location_id: str) -> Any:
        """Used when a package is routed to a location."""
        location = await self.repository.get_by_id(location_id)
        if location is None or not location.is_active:
            raise ValidationError(
                "Delivery location does not exist or is inactive",
                field="delivery_location_id",
            )
        return location

    async def create_location(
        self,
        caller: Caller,
        *,
        name: str,
        address: str,
        maps_url: str | None = None,
    ) -> Any:
        await self._require_admin(caller, name or "<new>", "create")
        name = require_text(name, "name")
        if await self.repository.get_by_name(name) is not None:
            raise ValidationError(
                f"A delivery location named {name!r} already exists",
                field="name",
            )
        location = await self.repository.create(
            name=name,
            address=require_text(address, "address"),
            maps_url=optional_text(maps_url),
            is_active=True,
            created_by=caller.staff_id,
        )
        await self.audit.append(
            AuditAction.DELIVERY_LOCATION_CREATED,
            EntityType.DELIVERY_LOCATION,
            location.id,
            caller.staff_id,
            {"name": location.name, **caller.audit_context()},
        )
        return location

    async def update_location(
        self,
        caller: Caller,
        location_id: str,
        *,
        name: str | None = None,
        address: str | None = None,
        maps_url: str | None = None,
        is_active: bool | None = None,
    ) -> Any:
        await self._require_admin(caller, location_id, "update")
        location = await self.get(location_id)

        changes: dict[str, Any] = {}
        if name is not None:
            name = require_text(name, "name")
            other = await self.repository.get_by_name(name)
            if other is not None and other.id != location_id:
                raise ValidationError(
                    f"A delivery location named {name!r} already exists",
                    field="name",
                )
            changes["name"] = name
        if address is not None:
            changes["address"] = require_text(address, "address")
        if maps_url is not None:
            changes["maps_url"] = optional_text(maps_url)
        if is_active is not None:
            changes["is_active"] = bool(is_active)
        changes = {
            key: value
            for key, value in changes.items()
            if getattr(location, key) != value
        }
        if not changes:
            return location

        updated = await self.repository.update(location_id, **changes)
        await self.audit.append(
            AuditAction.DELIVERY_LOCATION_UPDATED,
            EntityType.DELIVERY_LOCATION,
            location_id,
            caller.staff_id,
            {"changes": changes, **caller.audit_context()},
        )
        return updated

    async def _require_admin(
        self, caller: Caller, entity_id: str, attempted: str
    ) -> None:
        if caller.is_admin:
            return
        await self.audit.append(
            AuditAction.DELIVERY_LOCATION_DENIED,
            EntityType.DELIVERY_LOCATION,
            entity_id,
            caller.staff_id,
            {"attempted": attempted, **caller.audit_context()},
        )
        raise ForbiddenError(
            "Only administrators can manage delivery locations",
            role=str(caller.role),
        )
