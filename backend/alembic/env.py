"""
Alembic environment
===================
The application runs on async drivers (asyncpg / aiosqlite); migrations run on
the matching sync driver (psycopg2 / pysqlite).

Run (from backend/):
  alembic upgrade head
  alembic upgrade head --sql          # offline: emit the SQL only
  alembic revision --autogenerate -m "description"
"""
from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool
from alembic import context

# ── alembic.ini logger configuration ──────────────────────────────────────
config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# ── ORM metadata ──────────────────────────────────────────────────────────
# Base.metadata must be populated for autogenerate to see every table
from app.config import settings  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.db.compat import to_sync_url  # noqa: E402
import app.db.schemas  # noqa: E402,F401 - registers all ORM models

target_metadata = Base.metadata

# ── DATABASE_URL override (async URL -> sync URL) ─────────────────────────
config.set_main_option("sqlalchemy.url", to_sync_url(settings.DATABASE_URL))


def run_migrations_offline() -> None:
    """Offline mode: render SQL without a database connection."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _configure_and_run(connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        compare_server_default=True,
        # SQLite cannot ALTER constraints in place
        render_as_batch=connection.dialect.name == "sqlite",
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Online mode: apply migrations to the configured database."""
    # A caller-supplied connection (programmatic upgrade) takes precedence
    connection = config.attributes.get("connection")
    if connection is not None:
        _configure_and_run(connection)
        return

    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        _configure_and_run(connection)


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
