from fastapi import APIRouter, Depends

from weave_settlement.converter import DataConverter
from weave_settlement.dependencies import (
    current_wallet,
    get_ledger_rpc,
    get_reconciler,
    get_round_controller,
    get_store,
    get_withdrawal_authorizer,
)
from weave_settlement.models.dc_models import (
    HistoryModel,
    LeaderboardModel,
    OkModel,
    RoundEndRequestModel,
    RoundSettledModel,
    RoundStartedModel,
    RoundStartRequestModel,
    SessionStateModel,
    SettlementModel,
)
from weave_settlement.services.escrow import EscrowReconciler
from weave_settlement.services.ledger_db import LedgerStore
from weave_settlement.services.ledger_rpc import LedgerRpc
from weave_settlement.services.rounds import RoundController
from weave_settlement.services.withdrawal import WithdrawalAuthorizer

rest_router = APIRouter()
data_converter = DataConverter()


class SessionAPI:
    @staticmethod
    @rest_router.post("/session-state", response_model=SessionStateModel)
    async def session_state(
        wallet: str = Depends(current_wallet),
        reconciler: EscrowReconciler = Depends(get_reconciler),
        rpc: LedgerRpc = Depends(get_ledger_rpc),
    ):
        """Reconcile the escrow vault, then report the authoritative ledger state

        Args:
            wallet (str): wallet resolved from the bearer token

        Returns:
            SessionStateModel: balances, finalization flag and the active round if any
        """
        await reconciler.reconcile(wallet)
        state = await rpc.session_state(wallet)
        return data_converter.convert_state_row_to_model(wallet, state)


class RoundAPI:
    @staticmethod
    @rest_router.post("/round-start", response_model=RoundStartedModel)
    async def round_start(
        request: RoundStartRequestModel,
        wallet: str = Depends(current_wallet),
        rounds: RoundController = Depends(get_round_controller),
    ):
        return await rounds.start(wallet, request.wager_ui)

    @staticmethod
    @rest_router.post("/round-end", response_model=RoundSettledModel)
    async def round_end(
        request: RoundEndRequestModel,
        wallet: str = Depends(current_wallet),
        rounds: RoundController = Depends(get_round_controller),
    ):
        return await rounds.end(wallet, request.round_id, request.streaks_ms)

    @staticmethod
    @rest_router.post("/round-abort", response_model=OkModel)
    async def round_abort(
        wallet: str = Depends(current_wallet),
        rounds: RoundController = Depends(get_round_controller),
    ):
        return await rounds.abort(wallet)


class SettlementAPI:
    @staticmethod
    @rest_router.post("/settle-game", response_model=SettlementModel)
    async def settle_game(
        wallet: str = Depends(current_wallet),
        authorizer: WithdrawalAuthorizer = Depends(get_withdrawal_authorizer),
    ):
        """Prepare and sign a withdraw-all authorization for the escrow program

        Returns:
            SettlementModel: signature bytes, amount, nonce, expiry and the authority key
        """
        return await authorizer.settle(wallet)


class HistoryAPI:
    @staticmethod
    @rest_router.get("/history", response_model=HistoryModel)
    async def history(
        wallet: str = Depends(current_wallet),
        store: LedgerStore = Depends(get_store),
    ):
        rounds = await store.read_history(wallet)
        return data_converter.convert_rounds_to_history(wallet, rounds)


class LeaderboardAPI:
    @staticmethod
    @rest_router.get("/leaderboard", response_model=LeaderboardModel)
    async def leaderboard(store: LedgerStore = Depends(get_store)):
        rounds = await store.read_leaderboard()
        return data_converter.convert_rounds_to_leaderboard(rounds)
