"""Shared fixtures for worker tests."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
import pytest_asyncio

from filecopy.db.engine import build_engine, build_session_factory
from filecopy.db.models import Base, FileCopyJob
from filecopy.utils.metrics import metrics
from filecopy.worker.store import JobStore


@pytest.fixture(autouse=True)
def _reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """File-backed SQLite database with the job table; separate connections
    per session so concurrent claims really contend for the write lock."""
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'jobs.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield build_session_factory(eng)
    await eng.dispose()


@pytest.fixture
def store(session_factory) -> JobStore:
    return JobStore(session_factory)


@pytest.fixture
def add_job(session_factory):
    """Insert a job row the way an external enqueuer would; returns its id."""

    async def _add(
        source_path: str = "/a",
        destination_path: str = "/b",
        *,
        status: str = "pending",
        job_id: int | None = None,
        created_at: datetime | None = None,
    ) -> int:
        now = datetime.now(timezone.utc)
        row = FileCopyJob(
            source_path=source_path,
            destination_path=destination_path,
            status=status,
            created_at=created_at or now,
            updated_at=now,
        )
        if job_id is not None:
            row.id = job_id
        async with session_factory() as db:
            db.add(row)
            await db.commit()
            return row.id

    return _add
