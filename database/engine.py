import logging

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.engine import make_url
from sqlalchemy.pool import StaticPool

from core.config import settings

logger = logging.getLogger(__name__)

DATABASE_URL = settings.database_url


def _engine_options(url: str) -> dict:
    """Pool settings for the configured backend."""
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite":
        # In-memory SQLite must share a single connection across sessions
        if parsed.database in (None, "", ":memory:"):
            return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
        return {}
    return {
        "pool_size": settings.database_pool_size,
        "max_overflow": settings.database_max_overflow,
        "pool_pre_ping": True,
    }


logger.info(f"Connecting to database backend {DATABASE_URL.split(':', 1)[0]}")

db_engine = create_async_engine(
    DATABASE_URL, echo=settings.database_echo, **_engine_options(DATABASE_URL)
)

# Create async session maker to be used throughout the application
AsyncSessionLocal = async_sessionmaker(
    db_engine, class_=AsyncSession, expire_on_commit=False
)


# Base class for declarative models
class Base(DeclarativeBase):
    # Server-side timestamps are fetched back on INSERT and UPDATE
    __mapper_args__ = {"eager_defaults": True}


# Dependency to get DB session
async def get_db():
    async with AsyncSessionLocal() as session:
        yield session


def _import_models() -> None:
    # Registers every table on Base.metadata
    import database.models.users  # noqa: F401
    import database.models.jobs  # noqa: F401
    import database.models.applications  # noqa: F401
    import database.models.communications  # noqa: F401


# Function to initialize the database (create tables)
async def init_db():
    _import_models()
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_db():
    """Drop every table. Only used by tests and local resets."""
    _import_models()
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


# Function to close database connections
async def close_db():
    """Close database engine and connections."""
    await db_engine.dispose()
