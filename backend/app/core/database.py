from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.DEBUG,
    pool_pre_ping=not settings.database_url.startswith("sqlite"),
)

# Shared by ReconciliationStore; every store call opens its own session
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def check_connection() -> str:
    """'connected' or the error text, for /health."""
    try:
        async with async_session() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
        return "connected"
    except Exception as e:
        return f"error: {e}"
