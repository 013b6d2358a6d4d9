"""Value types passed between the ledger components."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, TypedDict

from podledger.enums import StaffRole


class PackageItemInfo(TypedDict):
    quantity: int
    description: str


@dataclass(frozen=True)
class Caller:
    """A resolved, active staff member performing an operation."""

    staff_id: str
    account_id: str
    role: StaffRole
    full_name: str
    email: str
    is_active: bool = True

    def has_role(self, *roles: StaffRole) -> bool:
        """Admin implicitly satisfies every role gate."""
        return self.role == StaffRole.ADMIN or self.role in roles

    @property
    def is_admin(self) -> bool:
        return self.role == StaffRole.ADMIN

    def audit_context(self) -> dict[str, Any]:
        return {
            "performed_by_name": self.full_name,
            "performed_by_role": str(self.role),
        }


@dataclass(frozen=True)
class AuditFilters:
    """Audit query filters. ``since`` and ``until`` are both inclusive.

    Naive bounds are read as UTC.
    """

    entity_id: str | None = None
    entity_type: str | None = None
    performed_by: str | None = None
    action: str | None = None
    since: datetime | None = None
    until: datetime | None = None
    offset: int = 0
    limit: int = 50


@dataclass
class AuditPage:
    entries: list[Any] = field(default_factory=list)
    total: int = 0
    offset: int = 0
    limit: int = 50


@dataclass
class PackagePage:
    packages: list[Any] = field(default_factory=list)
    total: int = 0
    offset: int = 0
    limit: int = 50
