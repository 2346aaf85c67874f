"""Task body: copy one file from ``source_path`` to ``destination_path``.

The copy runs in a worker thread so the event loop keeps serving the other
worker loops (and the signal handlers) while large files are copied.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable

logger = logging.getLogger("filecopy.worker.task")

TaskBody = Callable[[str, str], Awaitable[None]]


@dataclass(frozen=True)
class TaskResult:
    """Outcome of one task-body execution."""

    ok: bool
    error: str | None = None

    @classmethod
    def success(cls) -> "TaskResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, description: str) -> "TaskResult":
        return cls(ok=False, error=description)


def _copy_sync(source_path: str, destination_path: str) -> None:
    destination = Path(destination_path)
    destination.parent.mkdir(parents=True, exist_ok=True)

    with open(source_path, "rb") as src, open(destination, "wb") as dst:
        shutil.copyfileobj(src, dst)


async def copy_file(source_path: str, destination_path: str) -> None:
    """Copy *source_path* to *destination_path*, creating parent directories.

    Raises whatever the filesystem raises (``FileNotFoundError``,
    ``PermissionError``, ...); the caller turns that into a failed job.
    """
    logger.debug("Copying %s -> %s", source_path, destination_path)
    await asyncio.to_thread(_copy_sync, source_path, destination_path)


async def run_task(task_body: TaskBody, source_path: str, destination_path: str) -> TaskResult:
    """Execute *task_body* and fold any exception into a ``TaskResult``.

    The exception text is kept verbatim as the job's ``last_error``.
    ``asyncio.CancelledError`` is a ``BaseException`` and passes through.
    """
    try:
        await task_body(source_path, destination_path)
    except Exception as exc:
        return TaskResult.failure(_describe_exception(exc))
    return TaskResult.success()


def _describe_exception(exc: BaseException) -> str:
    """``str(exc)``, or the exception class name when that is empty."""
    return str(exc) or type(exc).__name__
