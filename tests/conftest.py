"""Shared fixtures for podledger tests."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from podledger.app import create_app
from podledger.config import PodLedgerConfig
from podledger.contrib.sqlalchemy.ledger import (
    build_sqlalchemy_ledger,
    create_schema,
    create_session_factory,
)
from podledger.contrib.sqlalchemy.models import Base
from podledger.enums import PackageTransition, StaffRole
from podledger.ledger import DeliveryLedger

ADMIN = "acct-admin"
WAREHOUSE = "acct-warehouse"
DRIVER = "acct-driver"
COLLECTION = "acct-collection"
COLLECTION_2 = "acct-collection-2"
INACTIVE = "acct-inactive"

SIGNED_AT = datetime(2026, 3, 14, 10, 30, tzinfo=UTC)


@dataclass(frozen=True)
class Member:
    account_id: str
    staff_id: str


class RecordingNotifier:
    """ReceiverNotifier double that records every call."""

    def __init__(self, *, result: bool = True, error: Exception | None = None):
        self.result = result
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def _send(self, kind: str, reference: str) -> bool:
        self.calls.append((kind, reference))
        if self.error is not None:
            raise self.error
        return self.result

    async def notify_package_created(self, package) -> bool:
        return await self._send("package_created", package.reference)

    async def notify_in_transit(self, package) -> bool:
        return await self._send("in_transit", package.reference)

    async def notify_pod_completed(self, pod, package) -> bool:
        return await self._send("pod_completed", pod.pod_reference)


@dataclass
class StaticRenderer:
    """PodDocumentRenderer double producing a predictable document ref."""

    rendered: list[str] = field(default_factory=list)

    async def render(self, pod, package) -> str:
        self.rendered.append(pod.pod_reference)
        return f"documents/{package.reference}/{pod.pod_reference}.pdf"


async def seed_staff(ledger: DeliveryLedger) -> dict[str, Member]:
    """Provision an admin, one member per role and a deactivated member."""
    admin = await ledger.provision_admin(
        account_id=ADMIN, email="admin@example.com", full_name="Ada Admin"
    )
    members = {"admin": Member(ADMIN, admin.id)}
    for key, account_id, role, name in (
        ("warehouse", WAREHOUSE, StaffRole.WAREHOUSE, "Wanda Warehouse"),
        ("driver", DRIVER, StaffRole.DRIVER, "Dirk Driver"),
        ("collection", COLLECTION, StaffRole.COLLECTION, "Cora Collection"),
        ("collection_2", COLLECTION_2, StaffRole.COLLECTION, "Cole Collection"),
        ("inactive", INACTIVE, StaffRole.WAREHOUSE, "Ina Inactive"),
    ):
        profile = await ledger.create_staff(
            ADMIN,
            staff_account_id=account_id,
            email=f"{account_id}@example.com",
            full_name=name,
            role=role,
        )
        members[key] = Member(account_id, profile.id)
    await ledger.deactivate_staff(ADMIN, members["inactive"].staff_id)
    return members


async def create_package(
    ledger: DeliveryLedger, account_id: str = WAREHOUSE, **overrides
):
    fields = {
        "receiver_email": "receiver@example.com",
        "items": [{"quantity": 2, "description": "Safety boots"}],
    }
    fields.update(overrides)
    return await ledger.create_package(account_id, **fields)


async def ready_package(ledger: DeliveryLedger):
    """A package that reached ready_for_collection."""
    package = await create_package(ledger)
    await ledger.transition_package(DRIVER, package.id, PackageTransition.PICKUP)
    return await ledger.transition_package(
        COLLECTION, package.id, PackageTransition.RECEIVE
    )


async def create_pod(
    ledger: DeliveryLedger, package_id: str, account_id: str = COLLECTION
):
    return await ledger.create_pod(
        account_id,
        package_id=package_id,
        signature_ref="signatures/abc.png",
        signed_at=SIGNED_AT,
    )


@pytest.fixture()
async def async_engine(tmp_path):
    """Async engine on a throwaway SQLite file.

    A file database gives every session its own connection, which the
    concurrency tests rely on.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}", echo=False
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
async def async_session_factory(async_engine):
    """Create an async session factory bound to the test engine."""
    factory = async_sessionmaker(
        async_engine, class_=AsyncSession, expire_on_commit=False
    )
    yield factory


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def renderer() -> StaticRenderer:
    return StaticRenderer()


@pytest.fixture()
def ledger(async_session_factory) -> DeliveryLedger:
    return build_sqlalchemy_ledger(async_session_factory)


@pytest.fixture()
def notifying_ledger(async_session_factory, notifier, renderer) -> DeliveryLedger:
    return build_sqlalchemy_ledger(
        async_session_factory, notifier=notifier, renderer=renderer
    )


@pytest.fixture()
async def staff(ledger) -> dict[str, Member]:
    return await seed_staff(ledger)


async def _seed_database(url: str) -> dict[str, Member]:
    engine, session_factory = create_session_factory(url)
    try:
        await create_schema(engine)
        return await seed_staff(build_sqlalchemy_ledger(session_factory))
    finally:
        await engine.dispose()


@pytest.fixture()
def seeded_members(tmp_path) -> tuple[str, dict[str, Member]]:
    """A schema plus staff on a SQLite file, seeded outside any test loop."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'api.db'}"
    return url, asyncio.run(_seed_database(url))


@pytest.fixture()
def client(seeded_members, notifier, renderer):
    url, _ = seeded_members
    app = create_app(
        PodLedgerConfig(database_url=url), notifier=notifier, renderer=renderer
    )
    with TestClient(app) as test_client:
        yield test_client


def as_account(account_id: str) -> dict[str, str]:
    return {"X-Account-Id": account_id}
