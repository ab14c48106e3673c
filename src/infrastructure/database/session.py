"""Database session management."""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from core.config import settings
from infrastructure.database.models import Base

# Transaction-mode connection poolers are incompatible with asyncpg's
# prepared statement cache, so it is disabled when connecting through one.
_connect_args: dict = {}
if "pooler." in settings.database_url:
    _connect_args["statement_cache_size"] = 0

# Create async engine
engine = create_async_engine(
    settings.async_database_url,
    echo=settings.debug,
    pool_pre_ping=True,
    connect_args=_connect_args,
)

# Create async session factory
async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def create_tables(bind: AsyncEngine = engine) -> None:
    """Create any missing tables (development and tests)."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
