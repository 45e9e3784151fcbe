"""Ledger stored procedure calls.

The ledger owns balances, rounds and withdrawal tickets. Every call here
is a single atomic procedure in its own transaction; nothing is cached
or recomputed locally.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Type, TypeVar
from uuid import UUID

from pydantic import BaseModel
from pydantic import ValidationError as RowValidationError
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from weave_settlement.errors import ExternalError, LedgerRefusalError
from weave_settlement.models.schema_models import (
    PlayerLedgerStateRow,
    RoundSettlementRow,
    RoundStartRow,
    WithdrawTicketRow,
)

RowT = TypeVar("RowT", bound=BaseModel)

# SQLSTATE classes the procedures use to refuse a request: P0 (RAISE EXCEPTION)
# and 23 (integrity constraint, e.g. the single-active-round index).
REFUSAL_SQLSTATE_CLASSES = ("P0", "23")

# Argument names and SQL types, in call order.
PROCEDURES: Dict[str, tuple] = {
    "sync_escrow": (("p_wallet", "text"), ("p_escrow_raw", "numeric")),
    "session_state": (("p_wallet", "text"),),
    "round_start": (("p_wallet", "text"), ("p_wager_raw", "numeric")),
    "round_end": (("p_wallet", "text"), ("p_round_id", "uuid"), ("p_streaks_ms", "bigint[]")),
    "abort_active_round": (("p_wallet", "text"),),
    "withdraw_prepare": (("p_wallet", "text"), ("p_amount_raw", "numeric"), ("p_ttl_seconds", "integer")),
}


def is_refusal(error: SQLAlchemyError) -> bool:
    """True when the procedure itself raised (plpgsql RAISE or a constraint), not a transport failure."""
    if not isinstance(error, DBAPIError):
        return False
    sqlstate = getattr(error.orig, "sqlstate", None) or getattr(error.orig, "pgcode", None)
    return isinstance(sqlstate, str) and sqlstate.startswith(REFUSAL_SQLSTATE_CLASSES)


def _statement(fn: str):
    args = ", ".join(f"CAST(:{name} AS {sql_type})" for name, sql_type in PROCEDURES[fn])
    return text(f"SELECT * FROM {fn}({args})")


class LedgerRpc:
    """Client for the ledger's stored procedures."""

    def __init__(self, Session: async_sessionmaker):
        self.Session = Session

    async def _call(self, fn: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        async with self.Session() as session:
            try:
                async with session.begin():
                    result = await session.execute(_statement(fn), params)
                    rows = [dict(row) for row in result.mappings().all()]
            except SQLAlchemyError as e:
                upstream = getattr(e, "orig", None) or e
                if is_refusal(e):
                    logging.warning(f"Ledger rpc/{fn} refused: {upstream}")
                    raise LedgerRefusalError(f"Ledger rpc/{fn} refused: {upstream}") from e
                logging.error(f"Ledger rpc/{fn} failed: {upstream}")
                raise ExternalError(f"Ledger rpc/{fn} failed: {upstream}") from e
        return rows

    async def _call_one(self, fn: str, params: Dict[str, Any], row_model: Type[RowT]) -> RowT:
        rows = await self._call(fn, params)
        if not rows:
            logging.error(f"Ledger rpc/{fn} returned no rows")
            raise ExternalError(f"Ledger rpc/{fn} returned no rows")
        try:
            return row_model.model_validate(rows[0])
        except RowValidationError as e:
            logging.error(f"Ledger rpc/{fn} returned a malformed row: {e}")
            raise ExternalError(f"Ledger rpc/{fn} returned a malformed row") from e

    async def sync_escrow(self, wallet: str, escrow_raw: int) -> None:
        await self._call("sync_escrow", {"p_wallet": wallet, "p_escrow_raw": Decimal(escrow_raw)})

    async def session_state(self, wallet: str) -> PlayerLedgerStateRow:
        return await self._call_one("session_state", {"p_wallet": wallet}, PlayerLedgerStateRow)

    async def round_start(self, wallet: str, wager_raw: int) -> RoundStartRow:
        return await self._call_one(
            "round_start", {"p_wallet": wallet, "p_wager_raw": Decimal(wager_raw)}, RoundStartRow
        )

    async def round_end(self, wallet: str, round_id: UUID, streaks_ms: List[int]) -> RoundSettlementRow:
        return await self._call_one(
            "round_end",
            {"p_wallet": wallet, "p_round_id": round_id, "p_streaks_ms": streaks_ms},
            RoundSettlementRow,
        )

    async def abort_active_round(self, wallet: str) -> None:
        await self._call("abort_active_round", {"p_wallet": wallet})

    async def withdraw_prepare(self, wallet: str, amount_raw: int, ttl_seconds: int) -> WithdrawTicketRow:
        return await self._call_one(
            "withdraw_prepare",
            {"p_wallet": wallet, "p_amount_raw": Decimal(amount_raw), "p_ttl_seconds": ttl_seconds},
            WithdrawTicketRow,
        )
