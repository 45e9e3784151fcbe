from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import create_async_engine

from weave_settlement.load_secrets import user, password, host, port, db_name, ledger_timeout_seconds

POSTGRES_DATABASE_URL = URL.create(
    "postgresql+asyncpg",
    username=user,
    password=password,
    host=host,
    port=int(port) if port else None,
    database=db_name,
)

# Every ledger round trip is bounded; asyncpg applies `timeout` to connect
# and `command_timeout` to each statement.
engine = create_async_engine(
    POSTGRES_DATABASE_URL,
    pool_size=20,
    max_overflow=20,
    pool_pre_ping=True,
    connect_args={
        "timeout": ledger_timeout_seconds,
        "command_timeout": ledger_timeout_seconds,
    },
)
