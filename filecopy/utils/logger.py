"""Root logging for the worker process.

``LOG_FORMAT=text`` gives one human-readable line per record.
``LOG_FORMAT=json`` gives one JSON object per record, tagged with the
``worker_id`` and ``job_id`` of the loop that emitted it.
"""
import contextvars
import logging
import sys

from pythonjsonlogger.json import JsonFormatter

# Set by the worker loop; read by the JSON formatter
ctx_worker_id = contextvars.ContextVar("worker_id", default=None)
ctx_job_id = contextvars.ContextVar("job_id", default=None)

_TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# Driver and migration loggers that are chatty at INFO
_QUIET_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "asyncpg", "alembic")


class CorrelationJsonFormatter(JsonFormatter):
    """JSON formatter that adds the current worker and job ids."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        worker_id = ctx_worker_id.get()
        if worker_id:
            log_record["worker_id"] = worker_id

        job_id = ctx_job_id.get()
        if job_id is not None:
            log_record["job_id"] = job_id


def setup_logger(log_format: str = "text", log_level: str = "INFO"):
    """Configure the root logger; calling it again replaces the handler."""
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    if log_format.lower() == "json":
        handler.setFormatter(CorrelationJsonFormatter(
            _JSON_FORMAT,
            rename_fields={"levelname": "level", "asctime": "timestamp"},
        ))
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger
