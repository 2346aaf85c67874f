"""Error taxonomy for the file-copy worker.

Each kind is handled differently by the worker loop:

* ``ConnectivityError``: store unreachable / transaction failed.  The loop
  logs it and idles as if no job were available.
* ``TaskExecutionError``: the copy itself failed.  Recorded on the row as
  ``status='failed'`` with the description in ``last_error``.
* ``RecordingError``: the outcome could not be written after the copy
  ran.  Logged; the job stays in ``processing``.
"""

from __future__ import annotations


class FileCopyWorkerError(Exception):
    """Base class for all worker errors."""


class ConnectivityError(FileCopyWorkerError):
    """The job store could not be reached or the transaction did not commit."""


class TaskExecutionError(FileCopyWorkerError):
    """The task body reported a failure for a claimed job."""

    def __init__(self, job_id: int, description: str) -> None:
        super().__init__(description)
        self.job_id = job_id
        self.description = description


class RecordingError(FileCopyWorkerError):
    """A task outcome could not be durably written to the store."""

    def __init__(self, job_id: int, message: str) -> None:
        super().__init__(message)
        self.job_id = job_id
