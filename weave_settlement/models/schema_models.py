from pydantic import BaseModel, field_validator
from typing import Optional
from uuid import UUID
from datetime import datetime

from weave_settlement.domain.fixed_point import parse_raw


class ChallengeSchema(BaseModel):
    wallet: str
    nonce: str
    expires_at: datetime

    class Config:
        from_attributes = True


class SessionSchema(BaseModel):
    token: str
    wallet: str
    expires_at: datetime
    last_seen_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SettledRoundSchema(BaseModel):
    id: UUID
    wallet: str
    wager_raw: int
    multiplier_milli: int
    payout_raw: int
    ended_at: datetime

    class Config:
        from_attributes = True

    check_raw_amounts = field_validator("wager_raw", "payout_raw", mode="before")(parse_raw)


# Rows returned by the ledger's stored procedures. Numeric columns arrive as Decimal.
class PlayerLedgerStateRow(BaseModel):
    play_balance_raw: int
    escrow_observed_raw: int
    needs_finalization: bool
    active_round_id: Optional[UUID] = None
    active_expires_at: Optional[datetime] = None

    check_raw_amounts = field_validator("play_balance_raw", "escrow_observed_raw", mode="before")(parse_raw)


class RoundStartRow(BaseModel):
    round_id: UUID
    play_balance_raw: int
    expires_at: datetime

    check_raw_amounts = field_validator("play_balance_raw", mode="before")(parse_raw)


class RoundSettlementRow(BaseModel):
    multiplier_milli: int
    payout_raw: int
    play_balance_raw: int

    check_raw_amounts = field_validator("payout_raw", "play_balance_raw", mode="before")(parse_raw)


class WithdrawTicketRow(BaseModel):
    authorized_amount_raw: int
    nonce_raw: int
    expiry_unix: int

    check_raw_amounts = field_validator("authorized_amount_raw", "nonce_raw", "expiry_unix", mode="before")(parse_raw)
