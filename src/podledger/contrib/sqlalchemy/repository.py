"""SQLAlchemy repository implementations."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import exists, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from podledger.contrib.sqlalchemy.models import (
    DeliveryLocationModel,
    PackageItemModel,
    PackageModel,
    PodModel,
    PodSequenceModel,
    ReceiverProfileModel,
    StaffProfileModel,
)
from podledger.enums import EntityType, PackageStatus, StaffRole
from podledger.exceptions import (
    AlreadyCollectedError,
    DuplicatePodError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from podledger.references import format_pod_reference
from podledger.types import PackageItemInfo

logger = logging.getLogger(__name__)

# Statuses a POD can still be recorded from.
POD_SOURCE_STATUSES = (
    PackageStatus.PENDING.value,
    PackageStatus.NOTIFIED.value,
    PackageStatus.IN_TRANSIT.value,
    PackageStatus.READY_FOR_COLLECTION.value,
)


def _locked_pod_exists(package_id: str):
    return exists().where(
        PodModel.package_id == package_id,
        PodModel.is_locked.is_(True),
    )


class SQLAlchemyStaffRepository:
    """Staff profile repository backed by SQLAlchemy async sessions."""

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        self.session_factory = session_factory

    async def get_by_id(self, staff_id: str) -> StaffProfileModel | None:
        async with self.session_factory() as session:
            return await session.get(StaffProfileModel, staff_id)

    async def get_by_account_id(self, account_id: str) -> StaffProfileModel | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(StaffProfileModel).where(
                    StaffProfileModel.account_id == account_id
                )
            )
            return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> StaffProfileModel | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(StaffProfileModel).where(StaffProfileModel.email == email)
            )
            return result.scalar_one_or_none()

    async def admin_exists(self) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(
                select(
                    exists().where(StaffProfileModel.role == StaffRole.ADMIN.value)
                )
            )
            return bool(result.scalar())

    async def list(self, *, include_inactive: bool = True) -> list[StaffProfileModel]:
        stmt = select(StaffProfileModel).order_by(StaffProfileModel.full_name)
        if not include_inactive:
            stmt = stmt.where(StaffProfileModel.is_active.is_(True))
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def create(self, **fields: Any) -> StaffProfileModel:
        staff = StaffProfileModel(id=str(uuid.uuid4()), **fields)
        async with self.session_factory() as session:
            session.add(staff)
            await session.commit()
            await session.refresh(staff)
        return staff

    async def update(self, staff_id: str, **fields: Any) -> StaffProfileModel:
        async with self.session_factory() as session:
            staff = await session.get(StaffProfileModel, staff_id)
            if staff is None:
                raise NotFoundError(EntityType.STAFF, staff_id)
            for key, value in fields.items():
                setattr(staff, key, value)
            await session.commit()
            await session.refresh(staff)
            return staff


class SQLAlchemyReceiverRepository:
    """Receiver profile repository."""

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        self.session_factory = session_factory

    async def get_by_id(self, receiver_id: str) -> ReceiverProfileModel | None:
        async with self.session_factory() as session:
            return await session.get(ReceiverProfileModel, receiver_id)

    async def get_by_email(self, email: str) -> ReceiverProfileModel | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ReceiverProfileModel).where(
                    ReceiverProfileModel.email == email
                )
            )
            return result.scalar_one_or_none()

    async def get_by_employee_number(
        self, employee_number: str
    ) -> ReceiverProfileModel | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ReceiverProfileModel).where(
                    ReceiverProfileModel.employee_number == employee_number
                )
            )
            return result.scalar_one_or_none()

    async def list(self, *, active_only: bool = False) -> list[ReceiverProfileModel]:
        stmt = select(ReceiverProfileModel).order_by(
            ReceiverProfileModel.surname, ReceiverProfileModel.name
        )
        if active_only:
            stmt = stmt.where(ReceiverProfileModel.is_active.is_(True))
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def search(
        self, query: str, *, limit: int = 20
    ) -> list[ReceiverProfileModel]:
        pattern = f"%{query}%"
        stmt = (
            select(ReceiverProfileModel)
            .where(
                ReceiverProfileModel.is_active.is_(True),
                or_(
                    ReceiverProfileModel.name.ilike(pattern),
                    ReceiverProfileModel.surname.ilike(pattern),
                    ReceiverProfileModel.employee_number.ilike(pattern),
                    ReceiverProfileModel.email.ilike(pattern),
                ),
            )
            .order_by(ReceiverProfileModel.surname, ReceiverProfileModel.name)
            .limit(limit)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def create(self, **fields: Any) -> ReceiverProfileModel:
        receiver = ReceiverProfileModel(id=str(uuid.uuid4()), **fields)
        async with self.session_factory() as session:
            session.add(receiver)
            await session.commit()
            await session.refresh(receiver)
        return receiver

    async def update(self, receiver_id: str, **fields: Any) -> ReceiverProfileModel:
        async with self.session_factory() as session:
            receiver = await session.get(ReceiverProfileModel, receiver_id)
            if receiver is None:
                raise NotFoundError(EntityType.RECEIVER, receiver_id)
            for key, value in fields.items():
                setattr(receiver, key, value)
            await session.commit()
            await session.refresh(receiver)
            return receiver


class SQLAlchemyLocationRepository:
    """Delivery location repository."""

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        self.session_factory = session_factory

    async def get_by_id(self, location_id: str) -> DeliveryLocationModel | None:
        async with self.session_factory() as session:
            return await session.get(DeliveryLocationModel, location_id)

    async def get_by_name(self, name: str) -> DeliveryLocationModel | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(DeliveryLocationModel).where(
                    func.lower(DeliveryLocationModel.name) == name.lower()
                )
            )
            return result.scalars().first()

    async def list(self, *, active_only: bool = False) -> list[DeliveryLocationModel]:
        stmt = select(DeliveryLocationModel).order_by(DeliveryLocationModel.name)
        if active_only:
            stmt = stmt.where(DeliveryLocationModel.is_active.is_(True))
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def create(self, **fields: Any) -> DeliveryLocationModel:
        location = DeliveryLocationModel(id=str(uuid.uuid4()), **fields)
        async with self.session_factory() as session:
            session.add(location)
            await session.commit()
            await session.refresh(location)
        return location

    async def update(self, location_id: str, **fields: Any) -> DeliveryLocationModel:
        async with self.session_factory() as session:
            location = await session.get(DeliveryLocationModel, location_id)
            if location is None:
                raise NotFoundError(EntityType.DELIVERY_LOCATION, location_id)
            for key, value in fields.items():
                setattr(location, key, value)
            await session.commit()
            await session.refresh(location)
            return location


class SQLAlchemyPackageRepository:
    """Package repository. Status changes are conditional single UPDATEs."""

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        self.session_factory = session_factory

    async def get_by_id(self, package_id: str) -> PackageModel | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(PackageModel).where(PackageModel.id == package_id)
            )
            return result.scalar_one_or_none()

    async def get_by_reference(self, reference: str) -> PackageModel | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(PackageModel).where(PackageModel.reference == reference)
            )
            return result.scalar_one_or_none()

    async def reference_exists(self, reference: str) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(
                select(exists().where(PackageModel.reference == reference))
            )
            return bool(result.scalar())

    async def create(
        self, *, items: Sequence[PackageItemInfo], **fields: Any
    ) -> PackageModel:
        package_id = str(uuid.uuid4())
        package = PackageModel(id=package_id, **fields)
        package.items = [
            PackageItemModel(
                position=position,
                quantity=item["quantity"],
                description=item["description"],
            )
            for position, item in enumerate(items)
        ]
        async with self.session_factory() as session:
            session.add(package)
            await session.commit()
        return await self.get_by_id(package_id)

    async def list(
        self,
        *,
        status: str | None = None,
        search: str | None = None,
        offset: int = 0,
        limit: int = 50,
    ) -> tuple[list[PackageModel], int]:
        stmt = select(PackageModel)
        if status is not None:
            stmt = stmt.where(PackageModel.status == status)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(
                    PackageModel.reference.ilike(pattern),
                    PackageModel.receiver_email.ilike(pattern),
                    PackageModel.po_number.ilike(pattern),
                )
            )
        async with self.session_factory() as session:
            total = await session.scalar(
                select(func.count()).select_from(stmt.subquery())
            )
            result = await session.execute(
                stmt.order_by(PackageModel.created_at.desc(), PackageModel.id)
                .offset(offset)
                .limit(limit)
            )
            return list(result.scalars().all()), int(total or 0)

    async def apply_transition(
        self,
        package_id: str,
        *,
        from_statuses: Sequence[str],
        to_status: str,
        **fields: Any,
    ) -> PackageModel | None:
        stmt = (
            update(PackageModel)
            .where(
                PackageModel.id == package_id,
                PackageModel.status.in_(list(from_statuses)),
                ~_locked_pod_exists(package_id),
            )
            .values(status=to_status, **fields)
            .execution_options(synchronize_session=False)
        )
        if not await self._write_one(stmt):
            return None
        return await self.get_by_id(package_id)

    async def update_details(
        self, package_id: str, **fields: Any
    ) -> PackageModel | None:
        stmt = (
            update(PackageModel)
            .where(
                PackageModel.id == package_id,
                ~_locked_pod_exists(package_id),
            )
            .values(**fields)
            .execution_options(synchronize_session=False)
        )
        if not await self._write_one(stmt):
            return None
        return await self.get_by_id(package_id)

    async def _write_one(self, stmt) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            if result.rowcount != 1:
                await session.rollback()
                return False
            await session.commit()
            return True


class SQLAlchemyPodRepository:
    """POD repository. Offers no delete."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        max_attempts: int = 5,
    ) -> None:
        self.session_factory = session_factory
        self.max_attempts = max_attempts

    async def get_by_id(self, pod_id: str) -> PodModel | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(PodModel).where(PodModel.id == pod_id)
            )
            return result.scalar_one_or_none()

    async def get_by_package_id(self, package_id: str) -> PodModel | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(PodModel).where(PodModel.package_id == package_id)
            )
            return result.scalar_one_or_none()

    async def get_by_reference(self, reference: str) -> PodModel | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(PodModel).where(PodModel.pod_reference == reference)
            )
            return result.scalar_one_or_none()

    async def create_for_package(
        self,
        *,
        package_id: str,
        sequence_scope: str,
        completed_at: datetime,
        **fields: Any,
    ) -> tuple[PodModel, PackageModel]:
        """Insert the POD, bump the sequence and collect the package in one
        transaction.

        A unique-constraint violation means another writer got there
        first: either the package already has its POD (reported as a
        duplicate) or the sequence number was taken (retried).
        """
        for attempt in range(1, self.max_attempts + 1):
            pod_id = str(uuid.uuid4())
            try:
                await self._insert_pod(
                    pod_id,
                    package_id=package_id,
                    sequence_scope=sequence_scope,
                    completed_at=completed_at,
                    fields=fields,
                )
            except IntegrityError:
                existing = await self.get_by_package_id(package_id)
                if existing is not None:
                    raise self._duplicate(existing) from None
                logger.warning(
                    "POD sequence collision for scope %s (attempt %d)",
                    sequence_scope,
                    attempt,
                )
                continue

            pod = await self.get_by_id(pod_id)
            async with self.session_factory() as session:
                package = await session.get(PackageModel, package_id)
            return pod, package

        raise ValidationError(
            "Could not allocate a POD reference",
            attempts=self.max_attempts,
        )

    async def _insert_pod(
        self,
        pod_id: str,
        *,
        package_id: str,
        sequence_scope: str,
        completed_at: datetime,
        fields: dict[str, Any],
    ) -> None:
        async with self.session_factory() as session:
            async with session.begin():
                package = await session.get(
                    PackageModel, package_id, with_for_update=True
                )
                if package is None:
                    raise NotFoundError(EntityType.PACKAGE, package_id)

                existing = await session.scalar(
                    select(PodModel).where(PodModel.package_id == package_id)
                )
                if existing is not None:
                    raise self._duplicate(existing)
                if package.status == PackageStatus.COLLECTED.value:
                    raise AlreadyCollectedError(
                        f"Package {package.reference} has already been collected",
                        package_reference=package.reference,
                        collected_at=package.collected_at,
                    )
                if package.status not in POD_SOURCE_STATUSES:
                    raise InvalidTransitionError(
                        f"Cannot record a POD for package {package.reference} "
                        f"with status '{package.status}'",
                        package_reference=package.reference,
                        current_status=package.status,
                    )

                sequence = await self._next_sequence(session, sequence_scope)
                session.add(
                    PodModel(
                        id=pod_id,
                        pod_reference=format_pod_reference(
                            completed_at.year, sequence
                        ),
                        package_id=package_id,
                        package_reference=package.reference,
                        receiver_email=package.receiver_email,
                        reference_scope=sequence_scope,
                        reference_sequence=sequence,
                        completed_at=completed_at,
                        created_at=completed_at,
                        is_locked=False,
                        **fields,
                    )
                )
                result = await session.execute(
                    update(PackageModel)
                    .where(
                        PackageModel.id == package_id,
                        PackageModel.status.in_(POD_SOURCE_STATUSES),
                    )
                    .values(
                        status=PackageStatus.COLLECTED.value,
                        collected_by=fields.get("staff_id"),
                        collected_at=completed_at,
                        updated_at=completed_at,
                        pod_id=pod_id,
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    raise InvalidTransitionError(
                        f"Package {package.reference} changed concurrently",
                        package_reference=package.reference,
                    )

    @staticmethod
    async def _next_sequence(session: AsyncSession, scope: str) -> int:
        counter = await session.get(PodSequenceModel, scope, with_for_update=True)
        if counter is None:
            counter = PodSequenceModel(scope=scope, value=0)
            session.add(counter)
        counter.value += 1
        await session.flush()
        return counter.value

    @staticmethod
    def _duplicate(existing: PodModel) -> DuplicatePodError:
        return DuplicatePodError(
            f"A POD already exists for package {existing.package_reference}",
            pod_reference=existing.pod_reference,
            package_reference=existing.package_reference,
            is_locked=existing.is_locked,
        )

    async def attach_document(
        self, pod_id: str, *, document_ref: str, generated_at: datetime
    ) -> PodModel | None:
        async with self.session_factory() as session:
            result = await session.execute(
                update(PodModel)
                .where(PodModel.id == pod_id, PodModel.is_locked.is_(False))
                .values(document_ref=document_ref, document_generated_at=generated_at)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await session.rollback()
                return None
            await session.commit()
        return await self.get_by_id(pod_id)

    async def mark_locked(self, pod_id: str, *, locked_at: datetime) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(
                update(PodModel)
                .where(PodModel.id == pod_id, PodModel.is_locked.is_(False))
                .values(is_locked=True, locked_at=locked_at)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await session.rollback()
                return False
            await session.commit()
            return True
