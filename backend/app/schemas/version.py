"""Version Pydantic schemas."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from app.models.version import DataType, VersionStatus


class Version(BaseModel):
    """Immutable snapshot of one persisted version record."""

    id: int
    task_id: int
    method_id: Optional[int] = None
    name: str
    prev_version: Optional[int] = None
    status: VersionStatus
    processed_file: Optional[int] = None
    config: Optional[dict[str, Any]] = None
    data_types: Optional[dict[str, DataType]] = None
    created_at: datetime

    model_config = {"from_attributes": True, "frozen": True}

    @property
    def parent_version_id(self) -> Optional[int]:
        return self.prev_version

    @property
    def is_root(self) -> bool:
        return self.prev_version is None


class VersionCreate(BaseModel):
    task_id: int
    method_id: Optional[int] = None
    name: str
    prev_version: Optional[int] = None
    config: Optional[dict[str, Any]] = None
    data_types: Optional[dict[str, DataType]] = None


class VersionCreateRequest(BaseModel):
    method_id: Optional[int] = None
    name: str
    parent_version_id: Optional[int] = None
    config: Optional[dict[str, Any]] = None
    data_types: Optional[dict[str, DataType]] = None


class VersionCreateResponse(BaseModel):
    version: Version
    warning: Optional[dict] = None


class VersionList(BaseModel):
    versions: list[Version]
    selected_version_id: Optional[int] = None
    total: int
    error: Optional[dict] = None


# --- Method invocation payload ---

class ColumnParameters(BaseModel):
    type: DataType
    step: Optional[Any] = None
    value: Optional[Any] = None


class MethodInvocation(BaseModel):
    """Opaque transformation parameters forwarded unmodified to the remote processor."""

    technique: str
    method: str
    step: Optional[Any] = None
    value: Optional[Any] = None
    target: Optional[str] = None
    columns: Optional[dict[str, ColumnParameters]] = None


class ColumnParameterRequest(BaseModel):
    step: Optional[Any] = None
    value: Optional[Any] = None


class MethodRunRequest(BaseModel):
    method: str
    method_id: Optional[int] = None
    name: str
    parent_version_id: int
    columns: list[str] = []
    parameters: dict[str, ColumnParameterRequest] = {}
    step: Optional[Any] = None
    value: Optional[Any] = None
    target: Optional[str] = None


class MethodInfo(BaseModel):
    method: str
    technique: str
    description: str


# --- Pipeline state ---

class PipelineStatusResponse(BaseModel):
    version_id: Optional[int] = None
    status: Optional[VersionStatus] = None
    is_polling: bool = False
    error: Optional[str] = None


# --- Tree layout ---

class Position(BaseModel):
    x: float
    y: float


class TreeNodeResponse(BaseModel):
    id: int
    version_data: Version = Field(alias="versionData")
    position: Position

    model_config = {"populate_by_name": True}


class TreeEdgeResponse(BaseModel):
    source: int
    target: int


class TreeLayoutResponse(BaseModel):
    nodes: list[TreeNodeResponse]
    edges: list[TreeEdgeResponse]
    orphans: list[int] = []
