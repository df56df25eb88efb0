"""Persistence adapter for version records."""

import logging
from typing import Optional, Protocol, Sequence

import pydantic
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.errors import FetchError, raise_version_not_found
from app.models.version import TaskVersion, VersionStatus
from app.schemas.version import Version, VersionCreate

logger = logging.getLogger(__name__)


class VersionRepository(Protocol):
    """Interface to the persistence layer holding version records."""

    async def list_versions(self, task_id: int) -> Sequence[Version]:
        ...

    async def get_version(self, version_id: int) -> Version:
        ...

    async def create_version(self, payload: VersionCreate) -> Version:
        ...

    async def update_status(
        self, version_id: int, status: VersionStatus, expected: Optional[VersionStatus] = None,
    ) -> Version:
        """Write ``status``; when ``expected`` is given, only if the record still has it.

        Returns the record as stored after the call.
        """
        ...


def to_version(row: TaskVersion) -> Version:
    """Convert an ORM row to a snapshot, rejecting malformed records."""
    try:
        return Version.model_validate(row)
    except pydantic.ValidationError as exc:
        raise FetchError(f"Malformed version record {row.id}: {exc}", extra={"version_id": row.id}) from exc


class SqlVersionRepository:
    """VersionRepository backed by the task_versions table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def list_versions(self, task_id: int) -> list[Version]:
        query = (
            select(TaskVersion)
            .where(TaskVersion.task_id == task_id)
            .order_by(TaskVersion.created_at.asc(), TaskVersion.id.asc())
        )
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(query)).scalars().all()
        except (SQLAlchemyError, LookupError) as exc:
            raise FetchError(f"Error fetching versions for task {task_id}: {exc}") from exc

        logger.info("Fetched %d versions for task %s", len(rows), task_id)
        return [to_version(row) for row in rows]

    async def get_version(self, version_id: int) -> Version:
        try:
            async with self._session_factory() as session:
                row = await session.get(TaskVersion, version_id)
        except (SQLAlchemyError, LookupError) as exc:
            raise FetchError(f"Error fetching version {version_id}: {exc}") from exc

        if row is None:
            raise_version_not_found(version_id)
        return to_version(row)

    async def create_version(self, payload: VersionCreate) -> Version:
        row = TaskVersion(
            task_id=payload.task_id,
            method_id=payload.method_id,
            name=payload.name,
            prev_version=payload.prev_version,
            status=VersionStatus.RAW,
            config=payload.config,
            data_types=(
                {column: dtype.value for column, dtype in payload.data_types.items()}
                if payload.data_types is not None
                else None
            ),
        )
        try:
            async with self._session_factory() as session:
                session.add(row)
                await session.commit()
                await session.refresh(row)
        except SQLAlchemyError as exc:
            raise FetchError(f"Error creating version '{payload.name}': {exc}") from exc
        return to_version(row)

    async def update_status(
        self, version_id: int, status: VersionStatus, expected: Optional[VersionStatus] = None,
    ) -> Version:
        try:
            async with self._session_factory() as session:
                row = await session.get(TaskVersion, version_id, with_for_update=True)
                if row is None:
                    raise_version_not_found(version_id)
                if expected is not None and row.status != expected:
                    logger.info("Version %s is %s, skipping %s transition", version_id, row.status.value, status.value)
                    return to_version(row)
                row.status = status
                await session.commit()
                await session.refresh(row)
        except SQLAlchemyError as exc:
            raise FetchError(f"Error updating version {version_id}: {exc}") from exc
        return to_version(row)
