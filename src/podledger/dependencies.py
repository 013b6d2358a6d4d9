"""Dependency providers for request handlers."""

from __future__ import annotations

from fastapi import Request

from podledger.config import PodLedgerConfig
from podledger.exceptions import ForbiddenError
from podledger.ledger import DeliveryLedger


def get_config(request: Request) -> PodLedgerConfig:
    """Read config from FastAPI app state."""
    return request.app.state.podledger_config


def get_ledger(request: Request) -> DeliveryLedger:
    """Read the delivery ledger from FastAPI app state."""
    return request.app.state.podledger_ledger


def get_account_id(request: Request) -> str:
    """External account id placed on the request by the upstream gateway."""
    header = get_config(request).account_header
    account_id = request.headers.get(header, "").strip()
    if not account_id:
        raise ForbiddenError(
            "Request does not identify a staff account", header=header
        )
    return account_id
