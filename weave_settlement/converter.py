from typing import List

from weave_settlement.domain.fixed_point import raw_to_ui, raw_to_ui_whole
from weave_settlement.domain.round_rules import multiplier_from_milli
from weave_settlement.domain.timestamps import format_timestamp
from weave_settlement.models.dc_models import (
    HistoryItemModel,
    HistoryModel,
    LeaderboardItemModel,
    LeaderboardModel,
    RoundSettledModel,
    RoundStartedModel,
    SessionStateModel,
)
from weave_settlement.models.schema_models import (
    PlayerLedgerStateRow,
    RoundSettlementRow,
    RoundStartRow,
    SettledRoundSchema,
)


def shorten_wallet(wallet: str) -> str:
    if len(wallet) > 10:
        return f"{wallet[:4]}…{wallet[-4:]}"
    return wallet


class DataConverter:
    """This class is used to convert ledger rows to the payloads sent to the client."""

    def convert_state_row_to_model(self, wallet: str, row: PlayerLedgerStateRow) -> SessionStateModel:
        """Convert the ledger's session_state row

        Args:
            wallet (str): wallet bound to the session
            row (PlayerLedgerStateRow): authoritative balance and active round

        Returns:
            SessionStateModel: raw amounts as strings plus the UI balance
        """
        return SessionStateModel(
            wallet=wallet,
            play_balance_raw=str(row.play_balance_raw),
            play_balance_ui=raw_to_ui(row.play_balance_raw),
            escrow_observed_raw=str(row.escrow_observed_raw),
            needs_finalization=row.needs_finalization,
            active_round_id=str(row.active_round_id) if row.active_round_id else None,
            active_expires_at=format_timestamp(row.active_expires_at) if row.active_expires_at else None,
        )

    def convert_round_start_row_to_model(self, wallet: str, row: RoundStartRow, wager_raw: int) -> RoundStartedModel:
        return RoundStartedModel(
            wallet=wallet,
            round_id=str(row.round_id),
            play_balance_raw=str(row.play_balance_raw),
            expires_at=format_timestamp(row.expires_at),
            wager_ui=raw_to_ui(wager_raw),
        )

    def convert_settlement_row_to_model(self, wallet: str, round_id: str, row: RoundSettlementRow) -> RoundSettledModel:
        return RoundSettledModel(
            wallet=wallet,
            round_id=round_id,
            multiplier_milli=row.multiplier_milli,
            multiplier=multiplier_from_milli(row.multiplier_milli),
            payout_raw=str(row.payout_raw),
            payout_ui=raw_to_ui_whole(row.payout_raw),
            play_balance_raw=str(row.play_balance_raw),
            play_balance_ui=raw_to_ui_whole(row.play_balance_raw),
        )

    def convert_rounds_to_history(self, wallet: str, rounds: List[SettledRoundSchema]) -> HistoryModel:
        items = [
            HistoryItemModel(
                id=str(r.id),
                ended_at=format_timestamp(r.ended_at),
                wager_ui=raw_to_ui_whole(r.wager_raw),
                payout_ui=raw_to_ui_whole(r.payout_raw),
                multiplier=multiplier_from_milli(r.multiplier_milli),
            )
            for r in rounds
        ]
        return HistoryModel(wallet=wallet, items=items)

    def convert_rounds_to_leaderboard(self, rounds: List[SettledRoundSchema]) -> LeaderboardModel:
        items = [
            LeaderboardItemModel(
                wallet=shorten_wallet(r.wallet),
                ended_at=format_timestamp(r.ended_at),
                wager_ui=raw_to_ui_whole(r.wager_raw),
                payout_ui=raw_to_ui_whole(r.payout_raw),
                multiplier=multiplier_from_milli(r.multiplier_milli),
            )
            for r in rounds
        ]
        return LeaderboardModel(items=items)
