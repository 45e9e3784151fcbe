from datetime import datetime
from typing import List, Optional, Tuple
import logging

from sqlalchemy import delete, desc, select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from weave_settlement.errors import ExternalError
from weave_settlement.models.schema_models import (
    ChallengeSchema,
    SessionSchema,
    SettledRoundSchema,
)
from weave_settlement.models.schemas import (
    AuthChallenge,
    Player,
    Round,
    WalletSession,
)


def _insert_for(session: AsyncSession, table):
    """Dialect specific INSERT so upserts can use ON CONFLICT."""
    dialect = session.bind.dialect.name
    if dialect == "postgresql":
        return postgresql_insert(table)
    if dialect == "sqlite":
        return sqlite_insert(table)
    raise ExternalError(f"Unsupported ledger dialect: {dialect}")


class CreateData:
    @staticmethod
    async def upsert_challenge(challenge: ChallengeSchema, now: datetime, session: AsyncSession) -> None:
        """Insert the wallet's challenge, replacing the previous one only if it has expired

        Concurrent callers therefore converge on whichever live challenge was stored first.

        Args:
            challenge (ChallengeSchema): wallet, nonce and expiry of the new challenge
            now (datetime): current time, challenges expiring before it are replaceable
            session (AsyncSession): AsyncSession object to interact with database
        """
        async with session:
            try:
                stmt = _insert_for(session, AuthChallenge).values(
                    wallet=challenge.wallet,
                    nonce=challenge.nonce,
                    expires_at=challenge.expires_at,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=[AuthChallenge.wallet],
                    set_={"nonce": stmt.excluded.nonce, "expires_at": stmt.excluded.expires_at},
                    where=AuthChallenge.expires_at < now,
                )
                await session.execute(stmt)
                await session.commit()
            except SQLAlchemyError as e:
                logging.error(f"Failed to upsert challenge: {e}")
                raise ExternalError(f"Ledger challenge upsert failed: {e}") from e

    @staticmethod
    async def create_session(session_data: SessionSchema, session: AsyncSession) -> None:
        """Insert a freshly minted session

        Args:
            session_data (SessionSchema): token, wallet and lifetime of the session
            session (AsyncSession): AsyncSession object to interact with database
        """
        async with session:
            try:
                session.add(
                    WalletSession(
                        token=session_data.token,
                        wallet=session_data.wallet,
                        expires_at=session_data.expires_at,
                        last_seen_at=session_data.last_seen_at,
                    )
                )
                await session.commit()
            except SQLAlchemyError as e:
                logging.error(f"Failed to create session: {e}")
                raise ExternalError(f"Ledger session insert failed: {e}") from e

    @staticmethod
    async def ensure_player(wallet: str, session: AsyncSession) -> None:
        """Create the player row if it does not exist yet. Safe to repeat."""
        async with session:
            try:
                stmt = (
                    _insert_for(session, Player)
                    .values(wallet=wallet)
                    .on_conflict_do_nothing(index_elements=[Player.wallet])
                )
                await session.execute(stmt)
                await session.commit()
            except SQLAlchemyError as e:
                logging.error(f"Failed to ensure player row: {e}")
                raise ExternalError(f"Ledger player upsert failed: {e}") from e


class ReadData:
    @staticmethod
    async def read_challenge(wallet: str, session: AsyncSession) -> Optional[ChallengeSchema]:
        """Read the wallet's current challenge, expired or not

        Args:
            wallet (str): base58 wallet public key

        Returns:
            Optional[ChallengeSchema]: None when the wallet has no challenge
        """
        async with session:
            try:
                stmt = select(AuthChallenge).where(AuthChallenge.wallet == wallet).limit(1)
                result = await session.execute(stmt)
                result = result.scalars().first()
                if result is None:
                    return None
                return ChallengeSchema.model_validate(result)
            except SQLAlchemyError as e:
                logging.error(f"Failed to read challenge: {e}")
                raise ExternalError(f"Ledger challenge read failed: {e}") from e

    @staticmethod
    async def read_session(token: str, session: AsyncSession) -> Optional[SessionSchema]:
        async with session:
            try:
                stmt = select(WalletSession).where(WalletSession.token == token).limit(1)
                result = await session.execute(stmt)
                result = result.scalars().first()
                if result is None:
                    return None
                return SessionSchema.model_validate(result)
            except SQLAlchemyError as e:
                logging.error(f"Failed to read session: {e}")
                raise ExternalError(f"Ledger session read failed: {e}") from e

    @staticmethod
    async def read_settled_rounds(
        session: AsyncSession, wallet: Optional[str] = None, limit: int = 10, by_payout: bool = False
    ) -> List[SettledRoundSchema]:
        """Read settled rounds, newest first or biggest payout first

        Args:
            session (AsyncSession): AsyncSession object to interact with database
            wallet (Optional[str]): restrict to one wallet, all wallets when None
            limit (int): maximum number of rows
            by_payout (bool): order by payout before recency (leaderboard)

        Returns:
            List[SettledRoundSchema]: settled rounds
        """
        async with session:
            try:
                stmt = select(Round).where(Round.status == "settled")
                if wallet is not None:
                    stmt = stmt.where(Round.wallet == wallet)
                if by_payout:
                    stmt = stmt.order_by(desc(Round.payout_raw), desc(Round.ended_at))
                else:
                    stmt = stmt.order_by(desc(Round.ended_at))
                result = await session.execute(stmt.limit(limit))
                return [SettledRoundSchema.model_validate(row) for row in result.scalars().all()]
            except SQLAlchemyError as e:
                logging.error(f"Failed to read settled rounds: {e}")
                raise ExternalError(f"Ledger rounds read failed: {e}") from e


class UpdateData:
    @staticmethod
    async def refresh_session(
        token: str,
        last_seen_at: datetime,
        expires_at: Optional[datetime],
        session: AsyncSession,
    ) -> None:
        """Touch a session and optionally slide its expiry in one write

        Args:
            token (str): session token
            last_seen_at (datetime): new last_seen_at
            expires_at (Optional[datetime]): new expiry, unchanged when None
        """
        values = {"last_seen_at": last_seen_at}
        if expires_at is not None:
            values["expires_at"] = expires_at
        async with session:
            try:
                stmt = update(WalletSession).where(WalletSession.token == token).values(**values)
                await session.execute(stmt)
                await session.commit()
            except SQLAlchemyError as e:
                logging.error(f"Failed to refresh session: {e}")
                raise ExternalError(f"Ledger session update failed: {e}") from e


class DeleteData:
    @staticmethod
    async def consume_challenge(wallet: str, nonce: str, session: AsyncSession) -> bool:
        """Delete the challenge only if it still carries `nonce`

        Returns:
            bool: False when another request consumed it first
        """
        async with session:
            try:
                stmt = delete(AuthChallenge).where(
                    AuthChallenge.wallet == wallet, AuthChallenge.nonce == nonce
                )
                result = await session.execute(stmt)
                await session.commit()
                return result.rowcount == 1
            except SQLAlchemyError as e:
                logging.error(f"Failed to delete challenge: {e}")
                raise ExternalError(f"Ledger challenge delete failed: {e}") from e

    @staticmethod
    async def delete_expired(now: datetime, session: AsyncSession) -> Tuple[int, int]:
        """Delete expired challenges and sessions

        Returns:
            Tuple[int, int]: deleted challenge count, deleted session count
        """
        async with session:
            try:
                challenges = await session.execute(
                    delete(AuthChallenge).where(AuthChallenge.expires_at < now)
                )
                sessions = await session.execute(
                    delete(WalletSession).where(WalletSession.expires_at < now)
                )
                await session.commit()
                return challenges.rowcount, sessions.rowcount
            except SQLAlchemyError as e:
                logging.error(f"Failed to delete expired rows: {e}")
                raise ExternalError(f"Ledger purge failed: {e}") from e
