"""Proof-of-delivery ledger public API."""

from typing import TYPE_CHECKING

__version__ = "0.1.0"

__all__ = [
    "DeliveryLedger",
    "PodDocumentRenderer",
    "PodLedgerConfig",
    "PodLedgerException",
    "ReceiverNotifier",
    "__version__",
    "create_podledger_router",
    "register_exception_handlers",
]

if TYPE_CHECKING:
    from podledger.config import PodLedgerConfig
    from podledger.exceptions import (
        PodLedgerException,
        register_exception_handlers,
    )
    from podledger.ledger import DeliveryLedger
    from podledger.protocols import PodDocumentRenderer, ReceiverNotifier
    from podledger.router import create_podledger_router


def __getattr__(name: str):
    # Lazy imports to avoid loading all submodules on package import.
    if name == "PodLedgerConfig":
        from podledger.config import PodLedgerConfig

        return PodLedgerConfig
    if name == "create_podledger_router":
        from podledger.router import create_podledger_router

        return create_podledger_router
    if name == "DeliveryLedger":
        from podledger.ledger import DeliveryLedger

        return DeliveryLedger
    if name in ("PodLedgerException", "register_exception_handlers"):
        from podledger import exceptions

        return getattr(exceptions, name)
    if name in ("ReceiverNotifier", "PodDocumentRenderer"):
        from podledger import protocols

        return getattr(protocols, name)
    raise AttributeError(f"module 'podledger' has no attribute {name!r}")
