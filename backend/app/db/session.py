from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.db.compat import enable_sqlite_foreign_keys, is_sqlite


def make_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Async engine with FK enforcement on SQLite and pooled connections on PostgreSQL."""
    if is_sqlite(url):
        eng = create_async_engine(url, echo=echo)
        enable_sqlite_foreign_keys(eng.sync_engine)
        return eng
    return create_async_engine(
        url,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        echo=echo,
    )


def make_session_factory(eng: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(eng, class_=AsyncSession, expire_on_commit=False)

