"""Closed vocabularies shared by the ledger components."""

from enum import StrEnum


class StaffRole(StrEnum):
    """Role of a staff member. Admin satisfies every role gate."""

    WAREHOUSE = "warehouse"
    DRIVER = "driver"
    COLLECTION = "collection"
    ADMIN = "admin"


class PackageStatus(StrEnum):
    PENDING = "pending"
    NOTIFIED = "notified"
    IN_TRANSIT = "in_transit"
    READY_FOR_COLLECTION = "ready_for_collection"
    COLLECTED = "collected"  # terminal
    RETURNED = "returned"  # terminal


class PackageTransition(StrEnum):
    PICKUP = "pickup"
    RECEIVE = "receive"
    COLLECT = "collect"
    MARK_RETURNED = "mark_returned"


class EntityType(StrEnum):
    PACKAGE = "package"
    POD = "pod"
    STAFF = "staff"
    DELIVERY_LOCATION = "delivery_location"
    RECEIVER = "receiver"


class PodSequenceScope(StrEnum):
    """How the NNNN part of ``POD-YYYY-NNNN`` is counted."""

    GLOBAL = "global"
    YEARLY = "yearly"


class AuditAction(StrEnum):
    """Action tags written by the ledger itself.

    The audit log accepts any non-empty action string; these are the
    ones emitted by built-in operations.
    """

    PACKAGE_CREATED = "PACKAGE_CREATED"
    PACKAGE_CREATE_DENIED = "PACKAGE_CREATE_DENIED"
    RECEIVER_NOTIFIED = "RECEIVER_NOTIFIED"
    PACKAGE_UPDATED = "PACKAGE_UPDATED"
    PACKAGE_UPDATE_DENIED = "PACKAGE_UPDATE_DENIED"
    PACKAGE_TRANSITION_DENIED = "PACKAGE_TRANSITION_DENIED"
    PACKAGE_PICKED_UP = "PACKAGE_PICKED_UP"
    PACKAGE_RECEIVED = "PACKAGE_RECEIVED"
    PACKAGE_COLLECTED = "PACKAGE_COLLECTED"
    PACKAGE_RETURNED = "PACKAGE_RETURNED"

    POD_CREATED = "POD_CREATED"
    POD_CREATE_DENIED = "POD_CREATE_DENIED"
    POD_DUPLICATE_ATTEMPT = "POD_DUPLICATE_ATTEMPT"
    POD_DOCUMENT_ATTACHED = "POD_DOCUMENT_ATTACHED"
    POD_MODIFICATION_DENIED = "POD_MODIFICATION_DENIED"
    POD_LOCKED = "POD_LOCKED"
    POD_LOCK_DENIED = "POD_LOCK_DENIED"
    POD_DELETE_ATTEMPT = "POD_DELETE_ATTEMPT"
    POD_EMAIL_SENT = "POD_EMAIL_SENT"

    STAFF_CREATED = "STAFF_CREATED"
    STAFF_UPDATED = "STAFF_UPDATED"
    STAFF_DEACTIVATED = "STAFF_DEACTIVATED"
    STAFF_REACTIVATED = "STAFF_REACTIVATED"
    STAFF_MODIFICATION_DENIED = "STAFF_MODIFICATION_DENIED"

    DELIVERY_LOCATION_CREATED = "DELIVERY_LOCATION_CREATED"
    DELIVERY_LOCATION_UPDATED = "DELIVERY_LOCATION_UPDATED"
    DELIVERY_LOCATION_DENIED = "DELIVERY_LOCATION_DENIED"

    RECEIVER_CREATED = "RECEIVER_CREATED"
    RECEIVER_UPDATED = "RECEIVER_UPDATED"
    RECEIVER_DEACTIVATED = "RECEIVER_DEACTIVATED"
    RECEIVER_REACTIVATED = "RECEIVER_REACTIVATED"
    RECEIVER_MODIFICATION_DENIED = "RECEIVER_MODIFICATION_DENIED"
