"""Worker process entrypoint.

    python -m filecopy.worker

    # With custom worker ID:
    WORKER_ID=worker-1 python -m filecopy.worker

    # Several independent loops in one process:
    WORKER_CONCURRENCY=4 python -m filecopy.worker

The worker will:
1. Load filecopy.config.settings (honours .env file)
2. Block until the file_copy_job table is reachable
3. Start WORKER_CONCURRENCY claim/execute loops
4. On SIGINT/SIGTERM stop claiming, let in-flight copies finish, then exit
"""

from __future__ import annotations

import asyncio
import logging
import signal

from filecopy.errors import ConnectivityError
from filecopy.worker.store import JobStore

logger = logging.getLogger("filecopy.worker")


async def _wait_for_db(store: JobStore, max_retries: int = 10, delay: float = 2.0) -> None:
    """Wait until the ``file_copy_job`` table is accessible."""
    for attempt in range(1, max_retries + 1):
        try:
            await store.ping()
            logger.info("Database ready after %d attempt(s)", attempt)
            return
        except ConnectivityError as exc:
            logger.warning(
                "Database not ready (attempt %d/%d): %s", attempt, max_retries, exc
            )
            if attempt < max_retries:
                await asyncio.sleep(delay)

    raise RuntimeError(
        f"Database not accessible after {max_retries} attempts. "
        "Run `alembic upgrade head` before starting the worker."
    )


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()

    def _handle_stop(*_):
        if not stop_event.is_set():
            logger.info("Received shutdown signal, finishing in-flight jobs")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _handle_stop)
        except (NotImplementedError, AttributeError):
            # Windows doesn't support add_signal_handler
            logger.warning(
                "Cannot install %s handler on this platform; graceful drain is "
                "unavailable and Ctrl+C may leave an in-flight job in processing",
                sig.name,
            )


async def main() -> None:
    """Worker process entrypoint."""
    from filecopy.config import settings
    from filecopy.db.engine import engine
    from filecopy.utils.logger import setup_logger
    from filecopy.utils.metrics import get_metrics_summary
    from filecopy.worker.loop import run_workers

    setup_logger(log_format=settings.LOG_FORMAT, log_level=settings.LOG_LEVEL)

    logger.info(
        "Starting file-copy worker (dialect=%s, concurrency=%d). Press Ctrl+C to stop.",
        settings.FILECOPY_DB_DIALECT,
        settings.WORKER_CONCURRENCY,
    )

    store = JobStore()
    try:
        await _wait_for_db(store, settings.DB_WAIT_RETRIES, settings.DB_WAIT_DELAY)

        stop_event = asyncio.Event()
        _install_signal_handlers(stop_event)

        await run_workers(
            settings.WORKER_CONCURRENCY,
            stop_event,
            store=store,
            idle_interval=settings.WORKER_IDLE_INTERVAL,
            worker_id=settings.WORKER_ID,
        )
    finally:
        logger.info("Worker metrics: %s", get_metrics_summary())
        await engine.dispose()

    logger.info("Worker stopped cleanly")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
