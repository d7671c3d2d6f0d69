import logging
from typing import Any, Dict

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
import redis.asyncio as redis

from payportal.config import settings
from payportal.models import Base

logger = logging.getLogger(__name__)


def _engine_kwargs(uri: str) -> Dict[str, Any]:
    kwargs: Dict[str, Any] = {"echo": settings.db_echo, "pool_pre_ping": True}
    if uri.startswith("postgresql+asyncpg"):
        # Per-statement timeout
        kwargs["connect_args"] = {"command_timeout": settings.db_command_timeout}
        kwargs["pool_timeout"] = settings.db_pool_timeout
    elif uri.startswith("sqlite"):
        kwargs["connect_args"] = {"timeout": settings.db_command_timeout}
    return kwargs


# Relational store (accounts, roles, transactions)
engine = create_async_engine(settings.database_uri, **_engine_kwargs(settings.database_uri))
AsyncSessionLocal = async_sessionmaker(
    bind=engine, class_=AsyncSession, expire_on_commit=False
)

# Redis (token revocation list)
if settings.redis_uri:
    redis_client = redis.from_url(
        settings.redis_uri,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_timeout,
    )
else:
    redis_client = None


# Database dependency
async def get_db():
    async with AsyncSessionLocal() as session:
        yield session


async def init_models(bind=None) -> None:
    """Create any missing tables."""
    target = bind or engine
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")
