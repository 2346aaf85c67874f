"""Worker claim-and-execute loop.

Architecture
------------
Each loop holds at most one job at a time.  One cycle:

  claim()             one transaction: pending → processing
  task body           runs outside any transaction (may be a large copy)
  record_outcome()    one transaction: processing → done | failed

When a claim finds nothing (or the store is unreachable) the loop idles for
``idle_interval`` seconds.  Several loops, in this process or in others,
may run against the same table; the claim's row locking keeps them apart.

Stopping:
  The loop watches an ``asyncio.Event``.  It is checked at the top of every
  cycle and around every idle wait (the wait wakes early when the event is
  set).  A task body that has started always runs to completion and has its
  outcome recorded before the loop returns.

Stranded jobs:
  A crash between claim and record leaves the row in ``processing``.  There
  is no lease expiry; such rows need operator attention.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import socket
import time
import uuid
from contextlib import suppress
from dataclasses import dataclass

from filecopy.config import settings
from filecopy.db.models import JobRef
from filecopy.errors import (
    ConnectivityError,
    FileCopyWorkerError,
    RecordingError,
    TaskExecutionError,
)
from filecopy.utils.logger import ctx_job_id, ctx_worker_id
from filecopy.utils.metrics import (
    record_claim_error,
    record_job_claimed,
    record_job_finished,
    record_recording_error,
)
from filecopy.worker.outcome import record_outcome
from filecopy.worker.store import JobStore
from filecopy.worker.task import TaskBody, copy_file, run_task

logger = logging.getLogger("filecopy.worker.loop")


def _default_worker_id() -> str:
    return f"{socket.gethostname()}-{uuid.uuid4().hex[:8]}"


class CycleStatus(str, enum.Enum):
    IDLE = "idle"                # no unlocked pending job
    CLAIM_ERROR = "claim_error"  # store unreachable during claim
    DONE = "done"
    FAILED = "failed"
    UNRECORDED = "unrecorded"    # task ran, outcome write failed


@dataclass(frozen=True)
class CycleOutcome:
    """What happened in one claim/execute/record cycle."""

    status: CycleStatus
    job: JobRef | None = None
    error: FileCopyWorkerError | None = None

    @property
    def should_idle(self) -> bool:
        return self.status in (CycleStatus.IDLE, CycleStatus.CLAIM_ERROR)


# ─────────────────────────────────────────────────────────────────────────────
# One cycle
# ─────────────────────────────────────────────────────────────────────────────


async def _execute_claimed(store: JobStore, job: JobRef, task_body: TaskBody) -> CycleOutcome:
    logger.info("Claimed job %s: %s -> %s", job.id, job.source_path, job.destination_path)

    started = time.monotonic()
    result = await run_task(task_body, job.source_path, job.destination_path)
    duration = time.monotonic() - started

    try:
        await record_outcome(store, job.id, result)
    except RecordingError as exc:
        record_recording_error()
        logger.error("Job %s left in processing: %s", job.id, exc, exc_info=True)
        return CycleOutcome(CycleStatus.UNRECORDED, job=job, error=exc)

    if result.ok:
        record_job_finished("done", duration)
        logger.info("Job %s done (%.2fs)", job.id, duration)
        return CycleOutcome(CycleStatus.DONE, job=job)

    record_job_finished("failed", duration)
    logger.warning("Job %s failed: %s", job.id, result.error)
    return CycleOutcome(
        CycleStatus.FAILED,
        job=job,
        error=TaskExecutionError(job.id, result.error or ""),
    )


async def run_cycle(store: JobStore, task_body: TaskBody = copy_file) -> CycleOutcome:
    """Claim one job, run *task_body* on it and record the result."""
    try:
        job = await store.claim()
    except ConnectivityError as exc:
        record_claim_error()
        logger.warning("Claim failed, treating as no work this cycle: %s", exc)
        return CycleOutcome(CycleStatus.CLAIM_ERROR, error=exc)

    if job is None:
        return CycleOutcome(CycleStatus.IDLE)

    record_job_claimed()
    token = ctx_job_id.set(job.id)
    try:
        return await _execute_claimed(store, job, task_body)
    finally:
        ctx_job_id.reset(token)


# ─────────────────────────────────────────────────────────────────────────────
# Main worker loop
# ─────────────────────────────────────────────────────────────────────────────


async def _wait_idle(stop_event: asyncio.Event, interval: float) -> None:
    """Sleep for *interval* seconds, returning early if *stop_event* is set."""
    with suppress(asyncio.TimeoutError):
        await asyncio.wait_for(stop_event.wait(), timeout=interval)


async def worker_loop(
    store: JobStore | None = None,
    task_body: TaskBody = copy_file,
    idle_interval: float | None = None,
    stop_event: asyncio.Event | None = None,
    worker_id: str | None = None,
) -> None:
    """Run claim/execute/record cycles until *stop_event* is set.

    Args:
        store:         Job store (default: one bound to the configured engine).
        task_body:     Coroutine ``(source_path, destination_path) -> None``;
                       raising marks the job failed.
        idle_interval: Seconds to wait after an empty or failed claim
                       (default: WORKER_IDLE_INTERVAL).
        stop_event:    Set it to stop the loop after the current cycle.
        worker_id:     Identifier for log lines (default: hostname+uuid).
    """
    _store = store if store is not None else JobStore()
    _idle_interval = idle_interval if idle_interval is not None else settings.WORKER_IDLE_INTERVAL
    _stop = stop_event if stop_event is not None else asyncio.Event()
    _worker_id = worker_id or settings.WORKER_ID or _default_worker_id()

    ctx_worker_id.set(_worker_id)
    logger.info(
        "Worker %s started (idle_interval=%.1fs, dialect=%s)",
        _worker_id, _idle_interval, _store.dialect,
    )

    while not _stop.is_set():
        try:
            outcome = await run_cycle(_store, task_body)
            should_idle = outcome.should_idle
        except Exception:
            logger.exception("Unexpected error in worker cycle; will retry")
            should_idle = True

        if should_idle:
            if _stop.is_set():
                break
            logger.debug("No job available, waiting %.1fs", _idle_interval)
            await _wait_idle(_stop, _idle_interval)

    logger.info("Worker %s stopped", _worker_id)


async def run_workers(
    concurrency: int,
    stop_event: asyncio.Event,
    store: JobStore | None = None,
    task_body: TaskBody = copy_file,
    idle_interval: float | None = None,
    worker_id: str | None = None,
) -> None:
    """Run *concurrency* independent worker loops sharing one store."""
    _store = store if store is not None else JobStore()
    base_id = worker_id or settings.WORKER_ID or _default_worker_id()

    loops = [
        worker_loop(
            store=_store,
            task_body=task_body,
            idle_interval=idle_interval,
            stop_event=stop_event,
            worker_id=base_id if concurrency == 1 else f"{base_id}-{n}",
        )
        for n in range(concurrency)
    ]
    await asyncio.gather(*loops)
