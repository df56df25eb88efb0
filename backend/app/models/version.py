"""Task version model."""

import enum
from datetime import datetime, timezone

from sqlalchemy import BigInteger, DateTime, Enum, ForeignKey, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base


class VersionStatus(str, enum.Enum):
    RAW = "RAW"
    RUNNING = "RUNNING"
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (VersionStatus.PROCESSED, VersionStatus.FAILED)


class DataType(str, enum.Enum):
    QUANTITATIVE = "QUANTITATIVE"
    QUALITATIVE = "QUALITATIVE"


class TaskVersion(Base):
    __tablename__ = "task_versions"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    task_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    method_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    prev_version: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("task_versions.id"), nullable=True, index=True)
    status: Mapped[VersionStatus] = mapped_column(Enum(VersionStatus, name="version_status"), default=VersionStatus.RAW)
    processed_file: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    config: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    data_types: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    # Relationships
    parent = relationship("TaskVersion", remote_side=[id])
