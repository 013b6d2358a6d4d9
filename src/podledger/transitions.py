"""Package status graph.

Each transition names the statuses it may start from, the status it
produces, the roles allowed to trigger it (admin always may), and the
``*_by`` / ``*_at`` fields stamped together with the status change.
"""

from __future__ import annotations

from dataclasses import dataclass

from podledger.enums import AuditAction, PackageStatus, PackageTransition, StaffRole


@dataclass(frozen=True)
class TransitionRule:
    transition: PackageTransition
    sources: frozenset[PackageStatus]
    target: PackageStatus
    roles: frozenset[StaffRole]
    audit_action: AuditAction
    stamp: str | None = None

    def stamp_fields(self, staff_id: str, at) -> dict:
        if self.stamp is None:
            return {}
        return {f"{self.stamp}_by": staff_id, f"{self.stamp}_at": at}


TRANSITIONS: dict[PackageTransition, TransitionRule] = {
    PackageTransition.PICKUP: TransitionRule(
        transition=PackageTransition.PICKUP,
        sources=frozenset({PackageStatus.PENDING, PackageStatus.NOTIFIED}),
        target=PackageStatus.IN_TRANSIT,
        roles=frozenset({StaffRole.DRIVER, StaffRole.ADMIN}),
        audit_action=AuditAction.PACKAGE_PICKED_UP,
        stamp="picked_up",
    ),
    PackageTransition.RECEIVE: TransitionRule(
        transition=PackageTransition.RECEIVE,
        sources=frozenset({PackageStatus.IN_TRANSIT}),
        target=PackageStatus.READY_FOR_COLLECTION,
        roles=frozenset({StaffRole.COLLECTION, StaffRole.ADMIN}),
        audit_action=AuditAction.PACKAGE_RECEIVED,
        stamp="received",
    ),
    PackageTransition.COLLECT: TransitionRule(
        transition=PackageTransition.COLLECT,
        sources=frozenset({PackageStatus.READY_FOR_COLLECTION}),
        target=PackageStatus.COLLECTED,
        roles=frozenset(
            {StaffRole.COLLECTION, StaffRole.WAREHOUSE, StaffRole.ADMIN}
        ),
        audit_action=AuditAction.PACKAGE_COLLECTED,
        stamp="collected",
    ),
    PackageTransition.MARK_RETURNED: TransitionRule(
        transition=PackageTransition.MARK_RETURNED,
        sources=frozenset(
            {
                PackageStatus.PENDING,
                PackageStatus.NOTIFIED,
                PackageStatus.READY_FOR_COLLECTION,
            }
        ),
        target=PackageStatus.RETURNED,
        roles=frozenset({StaffRole.ADMIN}),
        audit_action=AuditAction.PACKAGE_RETURNED,
    ),
}

TERMINAL_STATUSES = frozenset({PackageStatus.COLLECTED, PackageStatus.RETURNED})


def rule_for(transition: PackageTransition | str) -> TransitionRule:
    return TRANSITIONS[PackageTransition(transition)]


def allowed_successors(status: PackageStatus | str) -> set[PackageStatus]:
    """Statuses reachable in one step from ``status``."""
    current = PackageStatus(status)
    return {
        rule.target for rule in TRANSITIONS.values() if current in rule.sources
    }
