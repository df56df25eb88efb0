from app.models.base import Base
from app.models.version import DataType, TaskVersion, VersionStatus

__all__ = ["Base", "DataType", "TaskVersion", "VersionStatus"]
