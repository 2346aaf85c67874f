"""SQLAlchemy async engine and session factory."""

from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from filecopy.config import settings


def _build_engine_kwargs(url: str) -> dict:
    """Return engine kwargs appropriate for the dialect of *url*."""
    if url.startswith(("postgresql", "postgres")):
        return {
            "echo": settings.DEBUG,
            "pool_size": settings.FILECOPY_DB_POOL_SIZE,
            "max_overflow": settings.FILECOPY_DB_MAX_OVERFLOW,
            "pool_timeout": settings.FILECOPY_DB_POOL_TIMEOUT,
            "pool_pre_ping": True,   # ensure stale connections are recycled
            "pool_recycle": 1800,    # recycle connections older than 30 min
        }
    return {
        "echo": settings.DEBUG,
        "connect_args": {"check_same_thread": False},
    }


def _set_sqlite_pragmas(dbapi_conn, _conn_rec):  # type: ignore[no-untyped-def]
    # WAL lets readers proceed alongside the single writer; busy_timeout makes
    # a second claimant wait for the write lock instead of failing at once.
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


def build_engine(url: str | None = None) -> AsyncEngine:
    """Create an async engine for *url* (default: ``settings.FILECOPY_DB_URL``)."""
    url = url or settings.FILECOPY_DB_URL
    eng = create_async_engine(url, **_build_engine_kwargs(url))
    if url.startswith("sqlite"):
        event.listen(eng.sync_engine, "connect", _set_sqlite_pragmas)
    return eng


def build_session_factory(eng: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(eng, class_=AsyncSession, expire_on_commit=False)


engine = build_engine()

async_session = build_session_factory(engine)
