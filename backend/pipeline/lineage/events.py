"""Status event delivery: Redis pub/sub publishing and the store refresh relay."""

import json
import logging
from typing import Callable, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from app.core.config import settings
from app.core.errors import FetchError
from pipeline.lineage.orchestrator import StatusUpdate
from pipeline.lineage.store import VersionStore

logger = logging.getLogger(__name__)


def version_channel(version_id: int) -> str:
    return f"version:{version_id}"


class StatusPublisher:
    """Publishes status updates to Redis for WebSocket delivery."""

    def __init__(self, client: Optional[aioredis.Redis] = None):
        self._client = client or aioredis.from_url(settings.REDIS_URL)

    async def publish(self, update: StatusUpdate) -> None:
        payload = {
            "version_id": update.version_id,
            "status": update.status.value if update.status else None,
            "error": update.error,
            "task_id": update.task_id,
            "terminal": update.is_terminal,
        }
        await self._client.publish(version_channel(update.version_id), json.dumps(payload))

    async def aclose(self) -> None:
        await self._client.aclose()


class StatusRelay:
    """Orchestrator listener: publish every update, refresh the owning store on terminal status.

    The store is resolved from each update's task id.
    """

    def __init__(
        self,
        store_for: Optional[Callable[[int], Optional[VersionStore]]] = None,
        publisher: Optional[StatusPublisher] = None,
    ):
        self.store_for = store_for
        self.publisher = publisher

    async def __call__(self, update: StatusUpdate) -> None:
        if self.publisher is not None:
            try:
                await self.publisher.publish(update)
            except RedisError as exc:
                logger.warning("Could not publish status for version %s: %s", update.version_id, exc)

        if not update.is_terminal or update.task_id is None or self.store_for is None:
            return
        store = self.store_for(update.task_id)
        if store is not None:
            logger.info("Refreshing task %s after version %s became %s", update.task_id, update.version_id, update.status.value)
            try:
                await store.refresh()
            except FetchError:
                # Store keeps its last snapshot and records the error.
                pass
