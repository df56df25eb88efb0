"""Service-wide owner of per-task stores and per-user orchestrators."""

import logging
from typing import Optional

from app.core.auth import SessionContext
from pipeline.lineage.events import StatusPublisher, StatusRelay
from pipeline.lineage.orchestrator import PipelineOrchestrator
from pipeline.lineage.processor import RemoteProcessorClient
from pipeline.lineage.repository import VersionRepository
from pipeline.lineage.store import VersionStore

logger = logging.getLogger(__name__)


class LineageWorkspace:
    """Holds one VersionStore per task and one PipelineOrchestrator per user."""

    def __init__(
        self,
        repository: VersionRepository,
        processor: RemoteProcessorClient,
        publisher: Optional[StatusPublisher] = None,
        poll_interval: Optional[float] = None,
    ):
        self.repository = repository
        self.processor = processor
        self.publisher = publisher
        self.poll_interval = poll_interval
        self._stores: dict[int, VersionStore] = {}
        self._orchestrators: dict[str, PipelineOrchestrator] = {}
        self.relay = StatusRelay(self._stores.get, publisher)

    def store_for(self, task_id: int) -> VersionStore:
        store = self._stores.get(task_id)
        if store is None:
            store = VersionStore(self.repository, task_id)
            self._stores[task_id] = store
        return store

    async def store_for_version(self, version_id: int) -> VersionStore:
        """Store of the task owning a version. Raises NotFoundError."""
        version = await self.repository.get_version(version_id)
        return self.store_for(version.task_id)

    def orchestrator_for(self, context: SessionContext) -> PipelineOrchestrator:
        """The user's orchestrator, rebound to the latest session."""
        orchestrator = self._orchestrators.get(context.user_id)
        if orchestrator is None:
            orchestrator = PipelineOrchestrator(
                context,
                self.repository,
                self.processor,
                listener=self.relay,
                poll_interval=self.poll_interval,
            )
            self._orchestrators[context.user_id] = orchestrator
        else:
            orchestrator.context = context
        return orchestrator

    async def shutdown(self) -> None:
        for user_id, orchestrator in self._orchestrators.items():
            await orchestrator.stop()
            logger.info("Stopped orchestrator for user %s", user_id)
        self._orchestrators.clear()
        await self.processor.aclose()
        if self.publisher is not None:
            await self.publisher.aclose()
