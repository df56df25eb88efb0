"""Ordered snapshot of a task's versions plus the active selection.

The snapshot is replaced wholesale on every successful fetch and never
patched in place. Selection after a refresh is reconciled in priority order:

1. the preferred id requested by the caller (remembered until a snapshot
   containing it arrives),
2. the previously selected id, if still present,
3. the earliest version by creation order.
"""

import logging
from typing import Any, Optional, Sequence

from app.core.errors import (
    FetchError,
    InheritanceError,
    LineageError,
    NotFoundError,
    ValidationError,
)
from app.models.version import DataType
from app.schemas.version import Version, VersionCreate
from pipeline.lineage.repository import VersionRepository

logger = logging.getLogger(__name__)


def creation_order(versions: Sequence[Version]) -> list[Version]:
    return sorted(versions, key=lambda v: (v.created_at, v.id))


class VersionStore:
    """Authoritative, ordered snapshot of one task's versions."""

    def __init__(self, repository: VersionRepository, task_id: int):
        self.task_id = task_id
        self._repository = repository
        self._versions: tuple[Version, ...] = ()
        self._selected_id: Optional[int] = None
        self._pending_id: Optional[int] = None
        self.error: Optional[LineageError] = None

    @property
    def versions(self) -> tuple[Version, ...]:
        return self._versions

    @property
    def selected(self) -> Optional[Version]:
        return self.get(self._selected_id) if self._selected_id is not None else None

    @property
    def pending_version_id(self) -> Optional[int]:
        return self._pending_id

    def get(self, version_id: int) -> Optional[Version]:
        for version in self._versions:
            if version.id == version_id:
                return version
        return None

    async def list_versions(self) -> list[Version]:
        """Fetch the task's versions in creation order. Raises FetchError."""
        versions = await self._repository.list_versions(self.task_id)
        return creation_order([v for v in versions if v.task_id == self.task_id])

    async def create_version(
        self,
        parent_version_id: Optional[int],
        method_id: Optional[int],
        name: str,
        config: Optional[dict[str, Any]] = None,
        data_types: Optional[dict[str, DataType]] = None,
    ) -> Version:
        """Persist a new RAW version.

        Root versions must carry data types. Child versions inherit the
        parent's data types unless ``data_types`` overrides them; a failed
        parent lookup degrades to ``data_types=None`` and is recorded on
        ``self.error`` as an InheritanceError instead of aborting.
        """
        resolved = data_types
        if parent_version_id is None:
            if not data_types:
                raise ValidationError("Data types are required for a root version")
        else:
            parent = await self._lookup_parent(parent_version_id)
            if resolved is None:
                resolved = self._inherit_data_types(parent_version_id, parent)

        version = await self._repository.create_version(VersionCreate(
            task_id=self.task_id,
            method_id=method_id,
            name=name,
            prev_version=parent_version_id,
            config=config,
            data_types=resolved,
        ))
        logger.info(
            "Created version %s '%s' for task %s (parent=%s)",
            version.id, name, self.task_id, parent_version_id,
        )
        return version

    def select_version(self, version_id: int) -> None:
        """Select a version present in the current snapshot; otherwise a no-op."""
        if self.get(version_id) is not None:
            self._selected_id = version_id

    async def refresh(self, preferred_version_id: Optional[int] = None) -> tuple[Version, ...]:
        """Re-fetch the snapshot and reconcile the selection.

        On FetchError the last-known-good snapshot and selection are kept,
        the preference stays pending, and the error is re-raised.
        """
        if preferred_version_id is not None:
            self._pending_id = preferred_version_id

        try:
            versions = await self.list_versions()
        except FetchError as exc:
            logger.warning("Refresh failed for task %s, keeping %d cached versions: %s", self.task_id, len(self._versions), exc)
            self.error = exc
            raise

        self.error = None
        self._versions = tuple(versions)
        self._reconcile_selection()
        return self._versions

    def _reconcile_selection(self) -> None:
        ids = {v.id for v in self._versions}
        if self._pending_id is not None and self._pending_id in ids:
            self._selected_id = self._pending_id
            self._pending_id = None
        elif self._selected_id not in ids:
            self._selected_id = self._versions[0].id if self._versions else None

    async def _lookup_parent(self, parent_version_id: int) -> Optional[Version]:
        """Resolve a parent from the snapshot, falling back to the repository.

        Returns None when the lookup itself failed.
        """
        parent = self.get(parent_version_id)
        if parent is None:
            try:
                parent = await self._repository.get_version(parent_version_id)
            except NotFoundError as exc:
                raise ValidationError(
                    f"Parent version {parent_version_id} does not exist",
                    extra={"parent_version_id": parent_version_id},
                ) from exc
            except FetchError as exc:
                logger.warning("Parent lookup failed for version %s: %s", parent_version_id, exc)
                return None

        if parent.task_id != self.task_id:
            raise ValidationError(
                f"Parent version {parent_version_id} belongs to task {parent.task_id}",
                extra={"parent_version_id": parent_version_id},
            )
        return parent

    def _inherit_data_types(self, parent_version_id: int, parent: Optional[Version]) -> Optional[dict[str, DataType]]:
        if parent is not None and parent.data_types is not None:
            return dict(parent.data_types)

        self.error = InheritanceError(
            f"Could not inherit data types from version {parent_version_id}",
            extra={"parent_version_id": parent_version_id},
        )
        logger.warning("Creating child of version %s without data types", parent_version_id)
        return None
