from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool


def create_sqlite_engine() -> AsyncEngine:
    """In-memory aiosqlite engine for tests

    Returns:
        AsyncEngine: every session shares the single in-memory connection
    """
    return create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
