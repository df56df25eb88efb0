"""Tests for record conversion and status semantics."""

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from app.core.errors import FetchError
from app.models.version import DataType, VersionStatus
from pipeline.lineage.repository import to_version


def make_row(**overrides):
    fields = {
        "id": 4,
        "task_id": 1,
        "method_id": 2,
        "name": "normalized",
        "prev_version": 1,
        "status": "RUNNING",
        "processed_file": None,
        "config": {"method": "perform_normalization"},
        "data_types": {"age": "QUANTITATIVE"},
        "created_at": datetime(2024, 3, 1, tzinfo=timezone.utc),
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


def test_row_converts_to_snapshot():
    version = to_version(make_row())
    assert version.status == VersionStatus.RUNNING
    assert version.data_types == {"age": DataType.QUANTITATIVE}
    assert version.parent_version_id == 1
    assert not version.is_root


def test_unknown_status_is_fetch_error():
    with pytest.raises(FetchError) as exc_info:
        to_version(make_row(status="QUEUED"))
    assert exc_info.value.detail["version_id"] == 4


def test_unknown_data_type_is_fetch_error():
    with pytest.raises(FetchError):
        to_version(make_row(data_types={"age": "ORDINAL"}))


@pytest.mark.parametrize("status,terminal", [
    (VersionStatus.RAW, False),
    (VersionStatus.RUNNING, False),
    (VersionStatus.PROCESSED, True),
    (VersionStatus.FAILED, True),
])
def test_terminal_statuses(status, terminal):
    assert status.is_terminal is terminal
