"""Database connection and session management."""
import logging
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from chatcommerce.core.config import settings
from chatcommerce.db.models import Base

logger = logging.getLogger(__name__)


def to_async_url(url: str) -> str:
    """Convert a plain database URL to its async driver form."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


database_url = to_async_url(settings.database_url)

engine = create_async_engine(
    database_url,
    echo=False,
    future=True,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def init_db() -> None:
    """Initialize database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("[DB] Tables initialized")


def get_session_factory() -> async_sessionmaker:
    """Dependency for getting the session factory.

    Services open one short-lived session per operation so that concurrent
    tasks never share an AsyncSession.
    """
    return AsyncSessionLocal
