"""Alembic migration environment: supports both SQLite (dev) and PostgreSQL (prod).

Run migrations:
    # From the repository root:
    alembic upgrade head          # apply all pending migrations
    alembic downgrade -1          # roll back one revision

Environment variables (same as the worker):
    FILECOPY_DB_URL      Override the target database URL
    FILECOPY_DB_DIALECT  auto-detected from URL; set explicitly only if needed

The env.py uses the *synchronous* URL from settings.sync_db_url() because
Alembic's built-in context.run_migrations() is synchronous.  The async engine
is used at runtime by the worker but not for migrations.
"""

from __future__ import annotations

import sys
import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

# Make the filecopy package importable when alembic runs from a checkout.
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from filecopy.config import settings     # noqa: E402  (after sys.path tweak)
from filecopy.db.models import Base      # noqa: E402

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

# An explicit URL (e.g. set by tests via Config.set_main_option) wins over settings.
if not config.get_main_option("sqlalchemy.url"):
    config.set_main_option("sqlalchemy.url", settings.sync_db_url())


def run_migrations_offline() -> None:
    """Generate SQL script without connecting to the DB.

    Usage:  alembic upgrade head --sql
    """
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        compare_server_default=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations against a live DB connection."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,  # do not pool connections during migration
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            compare_server_default=True,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
