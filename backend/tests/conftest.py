"""Shared fakes for lineage and pipeline tests."""

import asyncio
from collections import Counter
from datetime import datetime, timedelta, timezone

import pytest

from app.core.auth import SessionContext
from app.core.errors import raise_version_not_found
from app.models.version import DataType, VersionStatus
from app.schemas.version import Version, VersionCreate

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_version(version_id, parent=None, task_id=1, status=VersionStatus.RAW, data_types=None,
                 config=None, created_minute=None, name=None):
    return Version(
        id=version_id,
        task_id=task_id,
        method_id=None,
        name=name or f"v{version_id}",
        prev_version=parent,
        status=status,
        processed_file=None,
        config=config,
        data_types=data_types,
        created_at=BASE_TIME + timedelta(minutes=created_minute if created_minute is not None else version_id),
    )


class FakeVersionRepository:
    """In-memory VersionRepository.

    ``errors[method]`` makes every call of that method raise.
    ``status_script[id]`` is consumed one item per get_version call; an item
    is either a VersionStatus written to the record or an exception to raise.
    """

    def __init__(self, versions=()):
        self.records: dict[int, Version] = {v.id: v for v in versions}
        self.calls: Counter = Counter()
        self.gets: list[int] = []
        self.errors: dict[str, Exception] = {}
        self.status_script: dict[int, list] = {}
        self.status_updates: list[tuple[int, VersionStatus]] = []
        self._clock = 1000

    def add(self, version: Version) -> None:
        self.records[version.id] = version

    def _check(self, method: str) -> None:
        self.calls[method] += 1
        if method in self.errors:
            raise self.errors[method]

    async def list_versions(self, task_id):
        self._check("list_versions")
        return [v for v in self.records.values() if v.task_id == task_id]

    async def get_version(self, version_id):
        self._check("get_version")
        self.gets.append(version_id)

        script = self.status_script.get(version_id)
        if script:
            item = script.pop(0)
            if isinstance(item, Exception):
                raise item
            self.records[version_id] = self.records[version_id].model_copy(update={"status": item})

        if version_id not in self.records:
            raise_version_not_found(version_id)
        return self.records[version_id]

    async def create_version(self, payload: VersionCreate):
        self._check("create_version")
        self._clock += 1
        version_id = max(self.records, default=0) + 1
        version = Version(
            id=version_id,
            status=VersionStatus.RAW,
            created_at=BASE_TIME + timedelta(minutes=self._clock),
            **payload.model_dump(),
        )
        self.records[version_id] = version
        return version

    async def update_status(self, version_id, status, expected=None):
        self._check("update_status")
        if version_id not in self.records:
            raise_version_not_found(version_id)
        if expected is not None and self.records[version_id].status != expected:
            return self.records[version_id]
        self.status_updates.append((version_id, status))
        self.records[version_id] = self.records[version_id].model_copy(update={"status": status})
        return self.records[version_id]


class FakeProcessor:
    """Records submissions; raises ``error`` when set.

    ``on_submit`` is called with each body before the error check.
    """

    def __init__(self, error=None):
        self.error = error
        self.on_submit = None
        self.submissions: list[dict] = []
        self.closed = False

    async def submit(self, body):
        self.submissions.append(body)
        if self.on_submit is not None:
            self.on_submit(body)
        if self.error is not None:
            raise self.error
        return {"status": "accepted"}

    async def aclose(self):
        self.closed = True


class RecordingListener:
    def __init__(self):
        self.updates = []

    async def __call__(self, update):
        self.updates.append(update)


async def drain(orchestrator, limit=1000):
    """Yield to the event loop until the orchestrator's poll loop finishes."""
    for _ in range(limit):
        if not orchestrator.is_polling:
            return
        await asyncio.sleep(0)
    raise AssertionError("poll loop did not finish")


@pytest.fixture
def data_types():
    return {"age": DataType.QUANTITATIVE, "income": DataType.QUANTITATIVE, "city": DataType.QUALITATIVE}


@pytest.fixture
def repo(data_types):
    return FakeVersionRepository([make_version(1, data_types=data_types)])


@pytest.fixture
def processor():
    return FakeProcessor()


@pytest.fixture
def context():
    return SessionContext(access_token="token", user_id="user-1")
