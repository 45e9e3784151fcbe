from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.schema import Column
from sqlalchemy.types import DateTime, Integer, Numeric, String, Uuid


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class AuthChallenge(Base):
    """One live login challenge per wallet (upserted by wallet)."""

    __tablename__ = "auth_challenges"
    wallet = Column(String, primary_key=True)
    nonce = Column(String, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)


class WalletSession(Base):
    __tablename__ = "sessions"
    token = Column(String, primary_key=True)
    wallet = Column(String, index=True, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    last_seen_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utc_now)


# The tables below belong to the ledger. This service only ensures a player
# row exists and reads settled rounds for history and leaderboard.
class Player(Base):
    __tablename__ = "players"
    wallet = Column(String, primary_key=True)
    created_at = Column(DateTime(timezone=True), default=_utc_now)


class Round(Base):
    __tablename__ = "rounds"
    id = Column(Uuid, primary_key=True)
    wallet = Column(String, index=True, nullable=False)
    wager_raw = Column(Numeric(39, 0), nullable=False)
    multiplier_milli = Column(Integer, nullable=True)
    payout_raw = Column(Numeric(39, 0), nullable=True)
    status = Column(String, nullable=False)
    ended_at = Column(DateTime(timezone=True), nullable=True)


OWNED_TABLES = [AuthChallenge.__table__, WalletSession.__table__]
