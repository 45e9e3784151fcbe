"""DB service layer for the tables this service reads and writes directly.

- Authentication and routers do not touch DB sessions; they call this module.
- This layer owns session boundaries: one short-lived session per call.
"""

from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import async_sessionmaker

from weave_settlement.crud import CreateData, DeleteData, ReadData, UpdateData
from weave_settlement.models.schema_models import (
    ChallengeSchema,
    SessionSchema,
    SettledRoundSchema,
)
from weave_settlement.models.schemas import OWNED_TABLES, Base

HISTORY_LIMIT = 10
LEADERBOARD_LIMIT = 25


class LedgerStore:
    def __init__(self, Session: async_sessionmaker):
        self.Session = Session

    async def create_tables(self) -> None:
        """Create the challenge and session tables if they do not exist."""
        engine = self.Session.kw["bind"]
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all, tables=OWNED_TABLES)

    async def read_challenge(self, wallet: str) -> Optional[ChallengeSchema]:
        async with self.Session() as session:
            return await ReadData.read_challenge(wallet, session)

    async def upsert_challenge(self, challenge: ChallengeSchema, now: datetime) -> None:
        async with self.Session() as session:
            await CreateData.upsert_challenge(challenge, now, session)

    async def consume_challenge(self, wallet: str, nonce: str) -> bool:
        async with self.Session() as session:
            return await DeleteData.consume_challenge(wallet, nonce, session)

    async def create_session(self, session_data: SessionSchema) -> None:
        async with self.Session() as session:
            await CreateData.create_session(session_data, session)

    async def read_session(self, token: str) -> Optional[SessionSchema]:
        async with self.Session() as session:
            return await ReadData.read_session(token, session)

    async def refresh_session(self, token: str, last_seen_at: datetime, expires_at: Optional[datetime]) -> None:
        async with self.Session() as session:
            await UpdateData.refresh_session(token, last_seen_at, expires_at, session)

    async def ensure_player(self, wallet: str) -> None:
        async with self.Session() as session:
            await CreateData.ensure_player(wallet, session)

    async def read_history(self, wallet: str) -> List[SettledRoundSchema]:
        async with self.Session() as session:
            return await ReadData.read_settled_rounds(session, wallet=wallet, limit=HISTORY_LIMIT)

    async def read_leaderboard(self) -> List[SettledRoundSchema]:
        async with self.Session() as session:
            return await ReadData.read_settled_rounds(session, limit=LEADERBOARD_LIMIT, by_payout=True)

    async def delete_expired(self, now: datetime) -> Tuple[int, int]:
        async with self.Session() as session:
            return await DeleteData.delete_expired(now, session)
