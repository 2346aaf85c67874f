"""Outcome recorder: map a task result to exactly one terminal transition."""

from __future__ import annotations

from filecopy.errors import ConnectivityError, RecordingError
from filecopy.worker.store import JobStore
from filecopy.worker.task import TaskResult


async def record_outcome(store: JobStore, job_id: int, result: TaskResult) -> None:
    """Write ``done`` or ``failed`` for *job_id* according to *result*.

    Only call this for a job this worker claimed, once per task execution.

    Raises:
        RecordingError: the write did not reach the store.  The task body has
            already run, so the job is left in ``processing``.
    """
    try:
        if result.ok:
            await store.mark_done(job_id)
        else:
            await store.mark_failed(job_id, result.error or "")
    except ConnectivityError as exc:
        raise RecordingError(
            job_id,
            f"outcome for job {job_id} ({'done' if result.ok else 'failed'}) not recorded: {exc}",
        ) from exc
