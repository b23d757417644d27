"""
DB dialect compatibility layer
==============================
PostgreSQL (production): BIGINT identity keys, NUMERIC money, asyncpg driver.
SQLite (tests / local): INTEGER PRIMARY KEY AUTOINCREMENT, FK enforcement via PRAGMA.

SQLite only treats a column as a rowid alias (and so only auto-increments it)
when it is declared exactly INTEGER, hence the BigInteger variant below.
AUTOINCREMENT additionally guarantees deleted keys are never handed out again.
"""
from sqlalchemy import BigInteger, Integer, Numeric, event
from sqlalchemy.engine import Engine

SurrogateKey = BigInteger().with_variant(Integer(), "sqlite")

# Money columns: 18 digits, 2 decimal places
Money = Numeric(18, 2)

_SYNC_DRIVER_MAP = {
    "postgresql+asyncpg://": "postgresql+psycopg2://",
    "sqlite+aiosqlite://": "sqlite://",
}


def to_sync_url(url: str) -> str:
    """Async driver URL -> sync driver URL (alembic / DDL rendering use sync engines)."""
    for async_prefix, sync_prefix in _SYNC_DRIVER_MAP.items():
        if url.startswith(async_prefix):
            return sync_prefix + url[len(async_prefix):]
    return url


def is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def enable_sqlite_foreign_keys(engine: Engine) -> None:
    """SQLite ships with FK enforcement off; switch it on for every new connection."""

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
