"""
env.py — ShipZone schema migrations

The database URL is taken from shipzone.config.Settings (DATABASE_URL),
never from alembic.ini. Importing shipzone.models fills Base.metadata
with the warehouses, zones and inquiries tables for autogenerate.

Notes:
- warehouses and zones already exist wherever the admin tool has run;
  on such a database use `alembic stamp head` instead of upgrading
- SQLite has no ALTER COLUMN, so migrations there run in batch mode

Called by: alembic CLI
Depends on: shipzone.models, shipzone.config
"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from shipzone.config import Settings
from shipzone.models import Base

config = context.config
config.set_main_option("sqlalchemy.url", Settings().database_url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def _configure(**kw) -> None:
    context.configure(target_metadata=Base.metadata, compare_type=True, **kw)


def run_migrations_offline() -> None:
    """Emit the migration SQL to stdout."""
    _configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        _configure(
            connection=connection,
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
