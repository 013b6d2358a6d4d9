"""Router factory for podledger."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI

from podledger.config import PodLedgerConfig
from podledger.exceptions import register_exception_handlers
from podledger.ledger import DeliveryLedger
from podledger.routes.audit import router as audit_router
from podledger.routes.health import router as health_router
from podledger.routes.locations import router as locations_router
from podledger.routes.packages import router as packages_router
from podledger.routes.pods import router as pods_router
from podledger.routes.receivers import router as receivers_router
from podledger.routes.staff import router as staff_router


def create_podledger_router(
    *,
    config: PodLedgerConfig,
    ledger: DeliveryLedger,
) -> APIRouter:
    """Create a configured API router."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        app.state.podledger_config = config
        app.state.podledger_ledger = ledger
        register_exception_handlers(app)
        yield

    router = APIRouter(lifespan=lifespan)
    router.include_router(health_router)
    router.include_router(packages_router)
    router.include_router(pods_router)
    router.include_router(audit_router)
    router.include_router(staff_router)
    router.include_router(locations_router)
    router.include_router(receivers_router)
    return router
