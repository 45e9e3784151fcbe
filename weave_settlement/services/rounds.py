"""Round lifecycle: none -> active -> settled | aborted.

The ledger enforces one active round per wallet and debits/credits the
authoritative balance atomically. A ledger refusal surfaces as StateError.
"""

import logging
from decimal import Decimal
from typing import List, Optional, Union
from uuid import UUID

from weave_settlement.converter import DataConverter
from weave_settlement.domain.fixed_point import floor_whole_units, parse_ui_amount, ui_to_raw
from weave_settlement.domain.round_rules import coerce_streaks_ms
from weave_settlement.errors import LedgerRefusalError, StateError, ValidationError
from weave_settlement.models.dc_models import OkModel, RoundSettledModel, RoundStartedModel
from weave_settlement.services.escrow import EscrowReconciler
from weave_settlement.services.ledger_rpc import LedgerRpc

data_converter = DataConverter()


class RoundController:
    def __init__(self, rpc: LedgerRpc, reconciler: EscrowReconciler):
        self.rpc = rpc
        self.reconciler = reconciler

    async def start(self, wallet: str, wager_ui: Union[int, float, str, None]) -> RoundStartedModel:
        """Open a round, debiting the wager from the ledger balance

        Args:
            wallet (str): session wallet
            wager_ui (Union[int, float, str, None]): wager in UI units as sent by the client

        Raises:
            ValidationError: wager missing, non-finite or below one whole unit
            StateError: the ledger refused (round already active, insufficient balance)
            ExternalError: the ledger failed or returned no row

        Returns:
            RoundStartedModel: round id, its expiry and the balance after the debit
        """
        if wager_ui is None:
            raise ValidationError("Missing wagerUi")
        try:
            amount = parse_ui_amount(wager_ui)
        except ValueError as e:
            raise ValidationError(f"Invalid wagerUi: {e}")
        if amount <= 0:
            raise ValidationError("wagerUi must be > 0")
        whole_units = floor_whole_units(amount)
        if whole_units <= 0:
            raise ValidationError("wagerUi must be at least 1")
        wager_raw = ui_to_raw(Decimal(whole_units))

        # Deposits that just landed must count toward the balance being debited.
        await self.reconciler.reconcile(wallet)
        try:
            row = await self.rpc.round_start(wallet, wager_raw)
        except LedgerRefusalError as e:
            raise StateError(e.message) from e

        logging.info(f"Round {row.round_id} started for {wallet}, wager_raw={wager_raw}")
        return data_converter.convert_round_start_row_to_model(wallet, row, wager_raw)

    async def end(
        self,
        wallet: str,
        round_id: Optional[str],
        streaks_ms: Optional[List[Union[int, float]]],
    ) -> RoundSettledModel:
        """Settle the active round from raw boost streak samples

        The ledger owns the tier table; no client multiplier is accepted.
        """
        if not round_id:
            raise ValidationError("Missing roundId")
        try:
            round_uuid = UUID(str(round_id))
        except ValueError:
            raise ValidationError("Invalid roundId")
        try:
            streaks = coerce_streaks_ms(streaks_ms)
        except ValueError as e:
            raise ValidationError(f"Invalid streaksMs: {e}")

        try:
            row = await self.rpc.round_end(wallet, round_uuid, streaks)
        except LedgerRefusalError as e:
            raise StateError(e.message) from e

        logging.info(f"Round {round_uuid} settled for {wallet}, multiplier_milli={row.multiplier_milli}")
        return data_converter.convert_settlement_row_to_model(wallet, str(round_uuid), row)

    async def abort(self, wallet: str) -> OkModel:
        """Clear a stuck active round without settling it."""
        try:
            await self.rpc.abort_active_round(wallet)
        except LedgerRefusalError as e:
            raise StateError(e.message) from e
        logging.info(f"Active round aborted for {wallet}")
        return OkModel(ok=True)
