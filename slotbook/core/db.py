from collections.abc import AsyncGenerator
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from slotbook.core.config import settings


def to_async_url(database_url: str) -> str:
    """Map a plain database URL onto its async driver.

    asyncpg does not accept psycopg params like sslmode/channel_binding, so those
    are stripped and SSL is enabled via connect_args instead.
    """
    if database_url.startswith("sqlite://"):
        return "sqlite+aiosqlite://" + database_url[len("sqlite://"):]
    parsed = urlparse(database_url)
    if parsed.scheme not in ("postgresql", "postgres"):
        return database_url
    query = parse_qs(parsed.query, keep_blank_values=True)
    query.pop("sslmode", None)
    query.pop("channel_binding", None)
    new_query = urlencode(query, doseq=True)
    return urlunparse(("postgresql+asyncpg", parsed.netloc, parsed.path, parsed.params, new_query, parsed.fragment))


def make_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    url = to_async_url(database_url)
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo)
    # Hosted Postgres (e.g. Neon) requires SSL; asyncpg uses this instead of sslmode
    connect_args = {"ssl": True} if settings.database_ssl else {}
    return create_async_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        connect_args=connect_args,
    )


def make_session_maker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = make_engine(settings.database_url, echo=settings.env == "development")
async_session_maker = make_session_maker(engine)


def session_dependency(maker: async_sessionmaker[AsyncSession]):
    """Request-scoped session from `maker`: committed on success, rolled back on error."""

    async def _get_session() -> AsyncGenerator[AsyncSession, None]:
        async with maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    return _get_session


get_session = session_dependency(async_session_maker)


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create tables if using create_all; prefer Alembic in production."""
    # Register tables on the metadata
    import slotbook.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
