"""Version lineage API routes: list, create, select, tree, run, start, watch."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, status

from app.core.auth import SessionContext, get_session_context
from app.core.errors import FetchError, raise_version_not_found
from app.core.workspace import LineageWorkspace
from app.schemas.version import (
    MethodInfo,
    MethodRunRequest,
    PipelineStatusResponse,
    Position,
    TreeEdgeResponse,
    TreeLayoutResponse,
    TreeNodeResponse,
    Version,
    VersionCreateRequest,
    VersionCreateResponse,
    VersionList,
)
from pipeline.lineage.store import VersionStore
from pipeline.lineage.tree import LineageTreeBuilder
from pipeline.methods.catalog import get_builder, list_methods

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Versions"])


def get_workspace(request: Request) -> LineageWorkspace:
    return request.app.state.workspace


def _version_list(store: VersionStore) -> VersionList:
    selected = store.selected
    return VersionList(
        versions=list(store.versions),
        selected_version_id=selected.id if selected else None,
        total=len(store.versions),
        error=store.error.detail if store.error else None,
    )


async def _refresh_or_keep(store: VersionStore, preferred_version_id: Optional[int] = None) -> None:
    try:
        await store.refresh(preferred_version_id)
    except FetchError:
        # Last snapshot stays; the error is reported through store.error.
        pass


@router.get("/methods", response_model=list[MethodInfo])
async def get_methods() -> list[MethodInfo]:
    """List the registered transformation methods."""
    return [MethodInfo(**m) for m in list_methods()]


@router.get("/tasks/{task_id}/versions", response_model=VersionList)
async def list_versions(
    task_id: int,
    workspace: LineageWorkspace = Depends(get_workspace),
) -> VersionList:
    """Refresh the task's snapshot and return it with the active selection."""
    store = workspace.store_for(task_id)
    await _refresh_or_keep(store)
    return _version_list(store)


@router.post("/tasks/{task_id}/versions", response_model=VersionCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_version(
    task_id: int,
    payload: VersionCreateRequest,
    session: SessionContext = Depends(get_session_context),
    workspace: LineageWorkspace = Depends(get_workspace),
) -> VersionCreateResponse:
    """Create a RAW version and make it the preferred selection."""
    store = workspace.store_for(task_id)
    store.error = None
    version = await store.create_version(
        parent_version_id=payload.parent_version_id,
        method_id=payload.method_id,
        name=payload.name,
        config=payload.config,
        data_types=payload.data_types,
    )
    warning = store.error.detail if store.error else None

    await _refresh_or_keep(store, version.id)
    return VersionCreateResponse(version=version, warning=warning)


@router.post("/tasks/{task_id}/versions/{version_id}/select", response_model=VersionList)
async def select_version(
    task_id: int,
    version_id: int,
    workspace: LineageWorkspace = Depends(get_workspace),
) -> VersionList:
    store = workspace.store_for(task_id)
    if store.get(version_id) is None:
        await _refresh_or_keep(store)
    if store.get(version_id) is None:
        raise_version_not_found(version_id)

    store.select_version(version_id)
    return _version_list(store)


@router.get("/tasks/{task_id}/tree", response_model=TreeLayoutResponse)
async def get_tree(
    task_id: int,
    strict: bool = False,
    workspace: LineageWorkspace = Depends(get_workspace),
) -> TreeLayoutResponse:
    """Positioned lineage forest for the task."""
    store = workspace.store_for(task_id)
    await _refresh_or_keep(store)

    builder = LineageTreeBuilder()
    forest = builder.build(store.versions, strict=strict)
    layout = builder.layout(forest)

    return TreeLayoutResponse(
        nodes=[
            TreeNodeResponse(id=n.id, version_data=n.version, position=Position(x=n.x, y=n.y))
            for n in layout.nodes
        ],
        edges=[TreeEdgeResponse(source=e.source, target=e.target) for e in layout.edges],
        orphans=forest.orphans,
    )


@router.post("/tasks/{task_id}/runs", response_model=Version, status_code=status.HTTP_202_ACCEPTED)
async def run_method(
    task_id: int,
    payload: MethodRunRequest,
    session: SessionContext = Depends(get_session_context),
    workspace: LineageWorkspace = Depends(get_workspace),
) -> Version:
    """Configure a method on a parent version, create the child and start it."""
    store = workspace.store_for(task_id)
    await _refresh_or_keep(store)

    parent = store.get(payload.parent_version_id)
    if parent is None:
        raise_version_not_found(payload.parent_version_id)

    builder = get_builder(payload.method, parent.data_types or {})
    builder.select_columns(payload.columns)
    for column, params in payload.parameters.items():
        builder.set_column_parameter(column, params.step, params.value)
    if payload.step is not None:
        builder.step = payload.step
    if payload.value is not None:
        builder.value = payload.value
    if payload.target is not None:
        builder.target = payload.target

    orchestrator = workspace.orchestrator_for(session)
    return await orchestrator.launch(
        store,
        builder,
        name=payload.name,
        parent_version_id=payload.parent_version_id,
        method_id=payload.method_id,
    )


@router.post("/versions/{version_id}/start", response_model=Version)
async def start_version(
    version_id: int,
    session: SessionContext = Depends(get_session_context),
    workspace: LineageWorkspace = Depends(get_workspace),
) -> Version:
    """Submit a RAW version to the processor and begin polling it."""
    store = await workspace.store_for_version(version_id)
    orchestrator = workspace.orchestrator_for(session)
    version = await orchestrator.start(version_id)
    await _refresh_or_keep(store, version_id)
    return version


@router.post("/versions/{version_id}/watch", response_model=PipelineStatusResponse)
async def watch_version(
    version_id: int,
    session: SessionContext = Depends(get_session_context),
    workspace: LineageWorkspace = Depends(get_workspace),
) -> PipelineStatusResponse:
    """Resume observing a version without submitting it."""
    version = await workspace.repository.get_version(version_id)
    orchestrator = workspace.orchestrator_for(session)
    await orchestrator.watch(version_id, initial_status=version.status)
    return _pipeline_status(orchestrator)


@router.post("/pipeline/stop", response_model=PipelineStatusResponse)
async def stop_pipeline(
    session: SessionContext = Depends(get_session_context),
    workspace: LineageWorkspace = Depends(get_workspace),
) -> PipelineStatusResponse:
    orchestrator = workspace.orchestrator_for(session)
    await orchestrator.stop()
    return _pipeline_status(orchestrator)


@router.get("/pipeline/status", response_model=PipelineStatusResponse)
async def pipeline_status(
    session: SessionContext = Depends(get_session_context),
    workspace: LineageWorkspace = Depends(get_workspace),
) -> PipelineStatusResponse:
    return _pipeline_status(workspace.orchestrator_for(session))


def _pipeline_status(orchestrator) -> PipelineStatusResponse:
    return PipelineStatusResponse(
        version_id=orchestrator.current_version_id,
        status=orchestrator.current_status,
        is_polling=orchestrator.is_polling,
        error=orchestrator.error,
    )
