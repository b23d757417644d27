"""
Shared fixtures
===============
In-memory SQLite databases with foreign keys enforced:

  engine / session                : sync, empty schema
  seeded_session                  : sync, sample portfolio loaded from the Core INSERTs
  async_engine / async_session    : aiosqlite, empty schema
  seeded_async_session            : aiosqlite, sample portfolio loaded via the loader helpers
"""
import os
import sys

import pytest

BASE_DIR = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
BACKEND_DIR = os.path.join(BASE_DIR, "backend")
sys.path.insert(0, BACKEND_DIR)

# Must be set before app.config is imported anywhere
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.db.base import Base  # noqa: E402
from app.db.compat import enable_sqlite_foreign_keys  # noqa: E402
from app.db.session import make_session_factory  # noqa: E402
import app.db.schemas  # noqa: E402,F401


def _sqlite_engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(eng)
    return eng


# ──────────────────────────────────────────────────────────────────────────────
# Sync SQLite
# ──────────────────────────────────────────────────────────────────────────────
@pytest.fixture
def engine():
    eng = _sqlite_engine()
    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as sess:
        yield sess
        sess.rollback()


@pytest.fixture
def seeded_session(session):
    from app.core.seed_sample_data import sample_data_statements

    for stmt in sample_data_statements():
        session.execute(stmt)
    session.commit()
    return session


# ──────────────────────────────────────────────────────────────────────────────
# Async SQLite (aiosqlite)
# ──────────────────────────────────────────────────────────────────────────────
@pytest.fixture
async def async_engine():
    eng = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    enable_sqlite_foreign_keys(eng.sync_engine)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def async_session(async_engine):
    factory = make_session_factory(async_engine)
    async with factory() as sess:
        yield sess
        await sess.rollback()


@pytest.fixture
async def seeded_async_session(async_session):
    from app.core.seed_sample_data import seed_sample_data

    await seed_sample_data(async_session)
    return async_session
