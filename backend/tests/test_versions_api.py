"""Tests for the version lineage HTTP routes."""

import pytest
from conftest import FakeProcessor, FakeVersionRepository, make_version
from fastapi.testclient import TestClient

from app.core.auth import create_access_token
from app.core.errors import FetchError, SubmissionError
from app.core.workspace import LineageWorkspace
from app.main import app
from app.models.version import DataType, VersionStatus

PAYLOAD = {
    "technique": "data_cleaning",
    "method": "fix_missing",
    "step": None,
    "value": None,
    "target": None,
    "columns": {"age": {"type": "QUANTITATIVE", "step": "impute_mean", "value": None}},
}


@pytest.fixture
def api_repo(data_types):
    return FakeVersionRepository([
        make_version(1, data_types=data_types),
        make_version(2, parent=1, data_types=data_types),
        make_version(3, parent=1, data_types=data_types, config=PAYLOAD),
    ])


@pytest.fixture
def api_processor():
    return FakeProcessor()


@pytest.fixture
def client(api_repo, api_processor):
    app.state.workspace = LineageWorkspace(api_repo, api_processor, poll_interval=60)
    with TestClient(app) as test_client:
        yield test_client
    app.state.workspace = None


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {create_access_token('user-1')}"}


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_list_methods(client):
    methods = {m["method"]: m for m in client.get("/api/methods").json()}
    assert methods["fix_missing"]["technique"] == "data_cleaning"


def test_list_versions_selects_first(client):
    body = client.get("/api/tasks/1/versions").json()
    assert body["total"] == 3
    assert body["selected_version_id"] == 1
    assert body["error"] is None


def test_list_failure_reports_error_and_keeps_snapshot(client, api_repo):
    client.get("/api/tasks/1/versions")
    api_repo.errors["list_versions"] = FetchError("database unavailable")

    body = client.get("/api/tasks/1/versions").json()

    assert body["total"] == 3
    assert body["error"]["error"] == "FETCH_FAILED"


def test_create_requires_auth(client):
    response = client.post("/api/tasks/1/versions", json={"name": "clean", "parent_version_id": 1})
    assert response.status_code == 401
    assert response.json()["detail"]["error"] == "AUTH_REQUIRED"


def test_create_child_becomes_selected(client, auth_headers):
    response = client.post(
        "/api/tasks/1/versions",
        json={"name": "clean", "parent_version_id": 1, "method_id": 5, "config": PAYLOAD},
        headers=auth_headers,
    )
    assert response.status_code == 201
    created = response.json()["version"]
    assert created["status"] == "RAW"
    assert created["data_types"]["city"] == "QUALITATIVE"

    listing = client.get("/api/tasks/1/versions").json()
    assert listing["selected_version_id"] == created["id"]


def test_create_root_without_data_types_is_422(client, auth_headers):
    response = client.post("/api/tasks/1/versions", json={"name": "root"}, headers=auth_headers)
    assert response.status_code == 422
    assert response.json()["detail"]["error"] == "VALIDATION_FAILED"


def test_create_reports_inheritance_warning(client, auth_headers, api_repo):
    api_repo.errors["get_version"] = FetchError("timeout")
    response = client.post(
        "/api/tasks/7/versions",
        json={"name": "child", "parent_version_id": 1},
        headers=auth_headers,
    )
    assert response.status_code == 201
    assert response.json()["version"]["data_types"] is None
    assert response.json()["warning"]["error"] == "INHERITANCE_FAILED"


def test_select_version(client):
    body = client.post("/api/tasks/1/versions/3/select").json()
    assert body["selected_version_id"] == 3

    assert client.post("/api/tasks/1/versions/99/select").status_code == 404


def test_tree_layout(client):
    body = client.get("/api/tasks/1/tree").json()

    nodes = {n["id"]: n for n in body["nodes"]}
    assert nodes[1]["position"] == {"x": 0.0, "y": 0.0}
    assert nodes[2]["position"] == {"x": -150.0, "y": 200.0}
    assert nodes[3]["position"] == {"x": 150.0, "y": 200.0}
    assert nodes[2]["versionData"]["prev_version"] == 1
    assert body["edges"] == [{"source": 1, "target": 2}, {"source": 1, "target": 3}]
    assert body["orphans"] == []


def test_strict_tree_with_orphan_is_409(client, api_repo):
    api_repo.add(make_version(8, parent=6, data_types={"age": DataType.QUANTITATIVE}))
    assert client.get("/api/tasks/1/tree").json()["orphans"] == [8]

    response = client.get("/api/tasks/1/tree", params={"strict": True})
    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "LINEAGE_INCONSISTENT"


def test_start_then_stop(client, auth_headers, api_processor, api_repo):
    response = client.post("/api/versions/3/start", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "RUNNING"
    assert api_processor.submissions[0]["taskMethodId"] == 3
    assert api_processor.submissions[0]["userId"] == "user-1"

    status_body = client.get("/api/pipeline/status", headers=auth_headers).json()
    assert status_body["version_id"] == 3

    stopped = client.post("/api/pipeline/stop", headers=auth_headers).json()
    assert stopped["is_polling"] is False


def test_start_running_version_is_409(client, auth_headers, api_repo, api_processor):
    api_repo.add(api_repo.records[3].model_copy(update={"status": VersionStatus.RUNNING}))
    response = client.post("/api/versions/3/start", headers=auth_headers)
    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "INVALID_STATE"
    assert api_processor.submissions == []


def test_start_processor_failure_is_502(client, auth_headers, api_repo, api_processor):
    api_processor.error = SubmissionError("HTTP 500 from processor", extra={"upstream_status": 500})
    response = client.post("/api/versions/3/start", headers=auth_headers)
    assert response.status_code == 502
    assert api_repo.records[3].status == VersionStatus.RAW
