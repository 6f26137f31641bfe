"""
Prompt & Pause — Alembic Migration Environment
===============================================

What:  Runs migrations for the Prompt & Pause schema with the async engine.
How:   The database URL comes from app.config (DATABASE_URL), never from
       alembic.ini. Online runs open an asyncpg connection and hand it to
       Alembic through run_sync().
Who:   `alembic upgrade head` at deploy time; `alembic revision --autogenerate`
       during development.
"""

import asyncio
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config
from alembic import context

from app.config import settings
from app.database import Base

# Every model module must be imported for autogenerate to see its table
from app.models.admin import AdminActivityLog, SubscriptionEvent, SystemSetting  # noqa: F401
from app.models.cron import CronJobRun  # noqa: F401
from app.models.email_log import EmailLog  # noqa: F401
from app.models.profile import Profile, UserPreferences  # noqa: F401
from app.models.reflection import PromptHistory, Reflection, WeeklyInsight  # noqa: F401
from app.models.support import SupportResponse, SupportTicket  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata
config.set_main_option("sqlalchemy.url", settings.database_url)


def _configure(**kwargs) -> None:
    # JSONB/ARRAY column type changes should show up in autogenerate diffs
    context.configure(target_metadata=target_metadata, compare_type=True, **kwargs)


def run_migrations_offline() -> None:
    """Emit SQL to stdout without a database connection (`alembic upgrade head --sql`)."""
    _configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    try:
        async with connectable.connect() as connection:
            await connection.run_sync(do_run_migrations)
    finally:
        await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
