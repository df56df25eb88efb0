"""Pipeline orchestrator: drives one version through RAW → RUNNING → terminal."""

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from app.core.auth import SessionContext
from app.core.config import settings
from app.core.errors import AuthError, FetchError, LineageError, ValidationError, raise_invalid_state
from app.models.version import VersionStatus
from app.schemas.version import Version
from pipeline.lineage.processor import RemoteProcessorClient
from pipeline.lineage.repository import VersionRepository

if TYPE_CHECKING:
    from pipeline.common.base import MethodConfigBuilder
    from pipeline.lineage.store import VersionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusUpdate:
    """One observation of a polled version."""

    version_id: int
    status: Optional[VersionStatus]
    error: Optional[str] = None
    task_id: Optional[int] = None

    @property
    def is_terminal(self) -> bool:
        return self.status is not None and self.status.is_terminal


StatusListener = Callable[[StatusUpdate], Awaitable[None]]


class CancellationToken:
    """Cooperative cancellation flag checked on every poll tick."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class PipelineOrchestrator:
    """Submit a version's transformation and poll until a terminal status.

    One orchestrator owns at most one poll target. Starting or watching a
    new id stops the previous loop first.
    """

    def __init__(
        self,
        context: Optional[SessionContext],
        repository: VersionRepository,
        processor: RemoteProcessorClient,
        listener: Optional[StatusListener] = None,
        poll_interval: Optional[float] = None,
    ):
        self.context = context
        self._repository = repository
        self._processor = processor
        self._listener = listener
        self.poll_interval = poll_interval if poll_interval is not None else settings.POLL_INTERVAL_SECONDS

        self._poll_task: Optional[asyncio.Task] = None
        self._switch_lock = asyncio.Lock()
        self._token: Optional[CancellationToken] = None
        self.current_version_id: Optional[int] = None
        self.current_status: Optional[VersionStatus] = None
        self.error: Optional[str] = None

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def start(self, version_id: int) -> Version:
        """Submit the version's payload and transition it to RUNNING.

        Raises NotFoundError, AuthError, StateError, ValidationError or
        SubmissionError. On any failure the version is left untouched.
        """
        version = await self._repository.get_version(version_id)

        if self.context is None or not self.context.is_authenticated:
            raise AuthError("User not found. Please sign in to continue.")

        if version.status != VersionStatus.RAW:
            raise_invalid_state(version_id, version.status.value)

        if not version.config:
            raise ValidationError(
                f"Version {version_id} has no method invocation payload",
                extra={"version_id": version_id},
            )

        body = {
            **version.config,
            "userId": self.context.user_id,
            "taskMethodId": version.id,
        }
        logger.info("Submitting version %s to processor", version_id)
        await self._processor.submit(body)

        # The processor may already have written a later status.
        current = await self._repository.update_status(
            version_id, VersionStatus.RUNNING, expected=VersionStatus.RAW,
        )
        if current.status == VersionStatus.RUNNING:
            logger.info("Version %s is RUNNING", version_id)
        else:
            logger.info("Version %s already %s, not marking RUNNING", version_id, current.status.value)

        await self.watch(version_id, initial_status=current.status)
        return current

    async def watch(self, version_id: int, initial_status: Optional[VersionStatus] = None) -> None:
        """Begin polling a version without submitting it.

        Target switches are serialised so concurrent calls never leave more
        than one poll loop alive.
        """
        async with self._switch_lock:
            await self.stop()

            token = CancellationToken()
            self._token = token
            self.current_version_id = version_id
            self.current_status = initial_status
            self.error = None

            logger.info("Starting polling for version %s every %.1fs", version_id, self.poll_interval)
            self._poll_task = asyncio.create_task(
                self._poll_loop(version_id, token),
                name=f"poll-version-{version_id}",
            )

    async def stop(self) -> None:
        """Cancel the active poll loop. Safe to call repeatedly and from any phase."""
        task, token = self._poll_task, self._token
        self._poll_task = None
        self._token = None

        if token is not None:
            token.cancel()
        # Called from inside the loop (e.g. by the listener): the token ends it.
        if task is None or task is asyncio.current_task():
            return

        if not task.done():
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Stopped polling for version %s", self.current_version_id)

    async def launch(
        self,
        store: "VersionStore",
        builder: "MethodConfigBuilder",
        name: str,
        parent_version_id: int,
        method_id: Optional[int] = None,
    ) -> Version:
        """Create a version from a builder's payload, select it and start it."""
        payload = builder.generate_payload()
        if payload is None:
            raise ValidationError(
                f"Invalid selection for method '{builder.method}'",
                extra={"method": builder.method, "columns": builder.selected_columns},
            )

        parent = store.get(parent_version_id)
        data_types = None
        if parent is not None and parent.data_types is not None:
            data_types = builder.output_data_types(parent.data_types)

        version = await store.create_version(
            parent_version_id=parent_version_id,
            method_id=method_id,
            name=name,
            config=payload.model_dump(mode="json"),
            data_types=data_types,
        )
        await self._refresh_quietly(store, version.id)

        await self.start(version.id)
        await self._refresh_quietly(store, version.id)
        return version

    async def _poll_loop(self, version_id: int, token: CancellationToken) -> None:
        while not token.cancelled:
            update = await self._tick(version_id)
            if token.cancelled:
                return

            if update.status is not None:
                self.current_status = update.status
            else:
                self.error = update.error
            await self._emit(update)
            if token.cancelled:
                return

            if update.is_terminal:
                logger.info("Version %s reached %s, polling finished", version_id, update.status.value)
                return

            await asyncio.sleep(self.poll_interval)

    async def _tick(self, version_id: int) -> StatusUpdate:
        try:
            version = await self._repository.get_version(version_id)
        except LineageError as exc:
            logger.warning("Polling version %s failed, retrying in %.1fs: %s", version_id, self.poll_interval, exc)
            return StatusUpdate(version_id, None, error=exc.message)
        return StatusUpdate(version_id, version.status, task_id=version.task_id)

    async def _emit(self, update: StatusUpdate) -> None:
        if self._listener is None:
            return
        try:
            await self._listener(update)
        except Exception:
            logger.exception("Status listener failed for version %s", update.version_id)

    @staticmethod
    async def _refresh_quietly(store: "VersionStore", preferred_version_id: int) -> None:
        try:
            await store.refresh(preferred_version_id)
        except FetchError:
            # Preference stays pending until a later refresh sees the version.
            pass

