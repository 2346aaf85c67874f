"""Job store: the ``file_copy_job`` table and the claim (lease) protocol.

Every operation opens its own session from the session factory and releases
it on the way out; nothing is held between calls, so any number of worker
loops can share one ``JobStore``.

Claiming strategy (dialect-aware):
  PostgreSQL: ``SELECT … FOR UPDATE SKIP LOCKED`` followed by the status
               UPDATE in the same transaction.  A racing claimant skips the
               locked row and takes the next-oldest one instead of waiting.
  SQLite:     One guarded ``UPDATE … WHERE id = (oldest pending) AND
               status = 'pending' RETURNING …``.  SQLite's database write lock
               serializes claimants; the status guard makes the loser see an
               empty result rather than the same row.

Job lifecycle:
  pending
    ↓   claim()
  processing
    ↓   mark_done() / mark_failed()
  done | failed
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import aliased

from filecopy.db.models import FileCopyJob, JobRef, JobStatus
from filecopy.errors import ConnectivityError

logger = logging.getLogger("filecopy.worker.store")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _detect_dialect(session_factory: async_sessionmaker[AsyncSession]) -> str:
    bind = session_factory.kw.get("bind")
    name = getattr(getattr(bind, "dialect", None), "name", None)
    if name == "postgresql":
        return "postgres"
    if name == "sqlite":
        return "sqlite"
    from filecopy.config import settings

    return settings.FILECOPY_DB_DIALECT


class JobStore:
    """Durable job table with an atomic, skip-locked claim."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        *,
        dialect: str | None = None,
    ) -> None:
        if session_factory is None:
            from filecopy.db.engine import async_session

            session_factory = async_session
        self._session_factory = session_factory
        self.dialect = dialect or _detect_dialect(session_factory)

    @property
    def is_postgres(self) -> bool:
        return self.dialect == "postgres"

    # ─────────────────────────────────────────────────────────────────────
    # Claim (lease) protocol
    # ─────────────────────────────────────────────────────────────────────

    async def fetch_and_lock_next_pending(self, db: AsyncSession) -> JobRef | None:
        """Select and lock the oldest unlocked pending row (PostgreSQL).

        Must run inside the caller's transaction; the row lock is held until
        that transaction ends.
        """
        result = await db.execute(
            select(FileCopyJob.id, FileCopyJob.source_path, FileCopyJob.destination_path)
            .where(FileCopyJob.status == JobStatus.PENDING.value)
            .order_by(FileCopyJob.created_at.asc(), FileCopyJob.id.asc())
            .limit(1)
            .with_for_update(skip_locked=True)
        )
        row = result.first()
        if row is None:
            return None
        return JobRef(id=row[0], source_path=row[1], destination_path=row[2])

    async def mark_processing(self, db: AsyncSession, job: JobRef) -> None:
        """Move a row locked by ``fetch_and_lock_next_pending`` to processing."""
        await db.execute(
            update(FileCopyJob)
            .where(FileCopyJob.id == job.id)
            .values(status=JobStatus.PROCESSING.value, updated_at=_utcnow())
            .execution_options(synchronize_session=False)
        )

    async def _claim_postgres(self, db: AsyncSession) -> JobRef | None:
        job = await self.fetch_and_lock_next_pending(db)
        if job is None:
            return None
        await self.mark_processing(db, job)
        return job

    async def _claim_sqlite(self, db: AsyncSession) -> JobRef | None:
        pending = aliased(FileCopyJob, name="pending")
        oldest = (
            select(pending.id)
            .where(pending.status == JobStatus.PENDING.value)
            .order_by(pending.created_at.asc(), pending.id.asc())
            .limit(1)
            .scalar_subquery()
        )
        result = await db.execute(
            update(FileCopyJob)
            .where(
                FileCopyJob.id == oldest,
                FileCopyJob.status == JobStatus.PENDING.value,
            )
            .values(status=JobStatus.PROCESSING.value, updated_at=_utcnow())
            .returning(FileCopyJob.id, FileCopyJob.source_path, FileCopyJob.destination_path)
            .execution_options(synchronize_session=False)
        )
        row = result.first()
        if row is None:
            return None
        return JobRef(id=row[0], source_path=row[1], destination_path=row[2])

    async def claim(self) -> JobRef | None:
        """Atomically claim the oldest pending job, or return ``None``.

        ``None`` means no *unlocked* pending row was visible at selection
        time; rows locked by concurrent claimants are skipped, not awaited.

        Raises:
            ConnectivityError: the store was unreachable or the transaction
                did not commit.  No state change may be assumed.
        """
        try:
            async with self._session_factory() as db:
                async with db.begin():
                    if self.is_postgres:
                        job = await self._claim_postgres(db)
                    else:
                        job = await self._claim_sqlite(db)
        except (SQLAlchemyError, OSError) as exc:
            raise ConnectivityError(f"claim failed: {exc}") from exc

        if job is not None:
            logger.debug("Claimed job %s", job.id)
        return job

    # ─────────────────────────────────────────────────────────────────────
    # Terminal transitions
    # ─────────────────────────────────────────────────────────────────────

    async def _write(self, job_id: int, values: dict) -> None:
        values["updated_at"] = _utcnow()
        try:
            async with self._session_factory() as db:
                async with db.begin():
                    await db.execute(
                        update(FileCopyJob)
                        .where(FileCopyJob.id == job_id)
                        .values(**values)
                        .execution_options(synchronize_session=False)
                    )
        except (SQLAlchemyError, OSError) as exc:
            raise ConnectivityError(f"update of job {job_id} failed: {exc}") from exc

    async def mark_done(self, job_id: int) -> None:
        """processing → done."""
        await self._write(job_id, {"status": JobStatus.DONE.value, "last_error": None})

    async def mark_failed(self, job_id: int, reason: str) -> None:
        """processing → failed, keeping *reason* verbatim in ``last_error``."""
        await self._write(job_id, {"status": JobStatus.FAILED.value, "last_error": reason})

    # ─────────────────────────────────────────────────────────────────────
    # Read-only helpers
    # ─────────────────────────────────────────────────────────────────────

    async def get(self, job_id: int) -> FileCopyJob | None:
        try:
            async with self._session_factory() as db:
                return await db.get(FileCopyJob, job_id)
        except (SQLAlchemyError, OSError) as exc:
            raise ConnectivityError(f"lookup of job {job_id} failed: {exc}") from exc

    async def ping(self) -> None:
        """Round-trip to the job table; raises ``ConnectivityError`` if unreachable."""
        try:
            async with self._session_factory() as db:
                await db.execute(text("SELECT 1 FROM file_copy_job LIMIT 1"))
        except (SQLAlchemyError, OSError) as exc:
            raise ConnectivityError(str(exc)) from exc
