"""Standalone ASGI application."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from podledger import __version__
from podledger.config import PodLedgerConfig
from podledger.contrib.sqlalchemy.ledger import (
    build_sqlalchemy_ledger,
    create_session_factory,
)
from podledger.exceptions import register_exception_handlers
from podledger.protocols import PodDocumentRenderer, ReceiverNotifier
from podledger.router import create_podledger_router


def create_app(
    config: PodLedgerConfig | None = None,
    *,
    notifier: ReceiverNotifier | None = None,
    renderer: PodDocumentRenderer | None = None,
) -> FastAPI:
    """Build the API on SQLAlchemy storage.

    Tables are not created here; run ``podledger init-db`` first.
    """
    config = config or PodLedgerConfig()
    engine, session_factory = create_session_factory(config.database_url)
    ledger = build_sqlalchemy_ledger(
        session_factory, config=config, notifier=notifier, renderer=renderer
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        yield
        await engine.dispose()

    app = FastAPI(title="podledger", version=__version__, lifespan=lifespan)
    register_exception_handlers(app)
    app.include_router(create_podledger_router(config=config, ledger=ledger))
    return app
