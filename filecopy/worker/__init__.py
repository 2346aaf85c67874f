"""Durable file-copy worker package.

The worker processes jobs from the ``file_copy_job`` table.

Start it as its own process (any number of copies may run side by side):
    python -m filecopy.worker          # default worker ID from hostname
    WORKER_ID=w1 python -m filecopy.worker

The worker claims jobs with:
- SELECT … FOR UPDATE SKIP LOCKED for PostgreSQL (row locks, no waiting).
- A guarded single-statement UPDATE … RETURNING for SQLite (dev and tests).
"""
