from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from weave_settlement.create_postgres_engine import engine

# Shared by LedgerStore (owned tables) and LedgerRpc (stored procedures).
# Rows are converted to pydantic schemas right after commit, so nothing expires on commit.
Session = async_sessionmaker(
    autocommit=False,
    class_=AsyncSession,
    autoflush=True,
    expire_on_commit=False,
    bind=engine,
)
