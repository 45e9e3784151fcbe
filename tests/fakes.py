"""In-memory collaborators for the ledger and the chain."""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from weave_settlement.create_sqlite_engine import create_sqlite_engine
from weave_settlement.domain.fixed_point import RAW_SCALE
from weave_settlement.errors import LedgerRefusalError
from weave_settlement.models.schema_models import (
    PlayerLedgerStateRow,
    RoundSettlementRow,
    RoundStartRow,
    WithdrawTicketRow,
)
from weave_settlement.models.schemas import Base
from weave_settlement.services.escrow import VaultAmounts
from weave_settlement.services.ledger_db import LedgerStore

ROUND_LIFETIME = timedelta(minutes=10)

# (minimum longest streak in ms, multiplier in milli)
TIERS = [(50_000, 20_000), (40_000, 8_000), (30_000, 3_500), (20_000, 1_500), (10_000, 500)]


def ui(amount: int) -> int:
    return amount * RAW_SCALE


class FakeClock:
    def __init__(self, now: Optional[datetime] = None):
        self.now = now or datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def multiplier_for(streaks_ms: List[int]) -> int:
    longest = max(streaks_ms, default=0)
    for threshold, milli in TIERS:
        if longest >= threshold:
            return milli
    return 0


class FakeLedgerRpc:
    """Implements the stored procedure contract the way the ledger does, in memory."""

    def __init__(self, clock: Optional[FakeClock] = None):
        self.clock = clock or FakeClock()
        self.balances: Dict[str, int] = {}
        self.escrow_observed: Dict[str, int] = {}
        self.active: Dict[str, dict] = {}
        self.tickets: Dict[str, WithdrawTicketRow] = {}
        self.nonces: Dict[str, int] = {}
        self.ticket_bonus_raw = 0
        self.calls: List[str] = []

    async def sync_escrow(self, wallet: str, escrow_raw: int) -> None:
        self.calls.append("sync_escrow")
        observed = self.escrow_observed.get(wallet, 0)
        if escrow_raw > observed:
            self.balances[wallet] = self.balances.get(wallet, 0) + escrow_raw - observed
        self.escrow_observed[wallet] = escrow_raw

    async def session_state(self, wallet: str) -> PlayerLedgerStateRow:
        self.calls.append("session_state")
        active = self.active.get(wallet)
        balance = self.balances.get(wallet, 0)
        observed = self.escrow_observed.get(wallet, 0)
        return PlayerLedgerStateRow(
            play_balance_raw=balance,
            escrow_observed_raw=observed,
            needs_finalization=balance == 0 and observed > 0,
            active_round_id=active["id"] if active else None,
            active_expires_at=active["expires_at"] if active else None,
        )

    async def round_start(self, wallet: str, wager_raw: int) -> RoundStartRow:
        self.calls.append("round_start")
        if wallet in self.active:
            raise LedgerRefusalError("Ledger rpc/round_start refused: round already active")
        balance = self.balances.get(wallet, 0)
        if wager_raw > balance:
            raise LedgerRefusalError("Ledger rpc/round_start refused: insufficient balance")
        self.balances[wallet] = balance - wager_raw
        round_id = uuid4()
        expires_at = self.clock() + ROUND_LIFETIME
        self.active[wallet] = {"id": round_id, "wager_raw": wager_raw, "expires_at": expires_at}
        return RoundStartRow(round_id=round_id, play_balance_raw=self.balances[wallet], expires_at=expires_at)

    async def round_end(self, wallet: str, round_id: UUID, streaks_ms: List[int]) -> RoundSettlementRow:
        self.calls.append("round_end")
        active = self.active.get(wallet)
        if active is None or active["id"] != round_id:
            raise LedgerRefusalError("Ledger rpc/round_end refused: no such active round")
        milli = multiplier_for(streaks_ms)
        payout = active["wager_raw"] * milli // 1000
        self.balances[wallet] = self.balances.get(wallet, 0) + payout
        del self.active[wallet]
        return RoundSettlementRow(multiplier_milli=milli, payout_raw=payout, play_balance_raw=self.balances[wallet])

    async def abort_active_round(self, wallet: str) -> None:
        self.calls.append("abort_active_round")
        self.active.pop(wallet, None)

    async def withdraw_prepare(self, wallet: str, amount_raw: int, ttl_seconds: int) -> WithdrawTicketRow:
        self.calls.append("withdraw_prepare")
        now_unix = int(self.clock().timestamp())
        ticket = self.tickets.get(wallet)
        if ticket is not None and now_unix < ticket.expiry_unix:
            return ticket
        self.nonces[wallet] = self.nonces.get(wallet, 0) + 1
        ticket = WithdrawTicketRow(
            authorized_amount_raw=amount_raw + self.ticket_bonus_raw,
            nonce_raw=self.nonces[wallet],
            expiry_unix=now_unix + ttl_seconds,
        )
        self.tickets[wallet] = ticket
        return ticket


class DummyChain:
    """Stands in for EscrowChain; balances are set directly by the test."""

    def __init__(self, treasury_raw: int = 0):
        self.vaults: Dict[str, int] = {}
        self.treasury_raw = treasury_raw
        self.reads = 0

    async def read_amounts(self, wallet: str) -> VaultAmounts:
        self.reads += 1
        return VaultAmounts(vault_raw=self.vaults.get(wallet, 0), treasury_raw=self.treasury_raw)


def make_session_factory():
    engine = create_sqlite_engine()
    Session = async_sessionmaker(
        autocommit=False,
        class_=AsyncSession,
        autoflush=True,
        expire_on_commit=False,
        bind=engine,
    )
    return engine, Session


async def create_all_tables(engine) -> None:
    """Owned tables plus the ledger's players/rounds, which production never creates."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def make_store():
    engine, Session = make_session_factory()
    await create_all_tables(engine)
    return engine, LedgerStore(Session)
