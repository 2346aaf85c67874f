"""ORM models for the file_copy_job work queue table."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import BigInteger, DateTime, Index, Integer, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class JobStatus(str, enum.Enum):
    """Lifecycle of a job row.  Transitions only move forward:

    pending → processing → done | failed
    """

    PENDING = "pending"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"


# BIGSERIAL on PostgreSQL; SQLite only autoincrements an INTEGER PRIMARY KEY.
_JobId = BigInteger().with_variant(Integer(), "sqlite")


class FileCopyJob(Base):
    __tablename__ = "file_copy_job"
    __table_args__ = (
        Index("ix_file_copy_job_status_created", "status", "created_at"),
    )

    id: Mapped[int] = mapped_column(_JobId, primary_key=True, autoincrement=True)
    source_path: Mapped[str] = mapped_column(Text, nullable=False)
    destination_path: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        Text, nullable=False, default=JobStatus.PENDING.value, server_default=JobStatus.PENDING.value
    )
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<FileCopyJob id={self.id} status={self.status!r}>"


@dataclass(frozen=True)
class JobRef:
    """Payload of a claimed job, handed to exactly one worker."""

    id: int
    source_path: str
    destination_path: str
