"""Wire a DeliveryLedger onto SQLAlchemy storage."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from podledger.clock import Clock, utcnow
from podledger.config import PodLedgerConfig
from podledger.contrib.sqlalchemy.audit_store import SQLAlchemyAuditLogStore
from podledger.contrib.sqlalchemy.models import Base
from podledger.contrib.sqlalchemy.repository import (
    SQLAlchemyLocationRepository,
    SQLAlchemyPackageRepository,
    SQLAlchemyPodRepository,
    SQLAlchemyReceiverRepository,
    SQLAlchemyStaffRepository,
)
from podledger.ledger import DeliveryLedger
from podledger.protocols import PodDocumentRenderer, ReceiverNotifier


def create_session_factory(
    database_url: str,
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    engine = create_async_engine(database_url)
    return engine, async_sessionmaker(engine, expire_on_commit=False)


async def create_schema(engine: AsyncEngine) -> None:
    """Create every ledger table that does not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def build_sqlalchemy_ledger(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    config: PodLedgerConfig | None = None,
    notifier: ReceiverNotifier | None = None,
    renderer: PodDocumentRenderer | None = None,
    clock: Clock = utcnow,
) -> DeliveryLedger:
    return DeliveryLedger(
        staff=SQLAlchemyStaffRepository(session_factory),
        packages=SQLAlchemyPackageRepository(session_factory),
        pods=SQLAlchemyPodRepository(session_factory),
        audit=SQLAlchemyAuditLogStore(session_factory),
        locations=SQLAlchemyLocationRepository(session_factory),
        receivers=SQLAlchemyReceiverRepository(session_factory),
        config=config,
        notifier=notifier,
        renderer=renderer,
        clock=clock,
    )
