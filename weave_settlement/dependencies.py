"""Request-scoped providers.

Every collaborator is resolved through FastAPI's dependency system so the
app can be wired to another ledger or chain (tests override these).
"""

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from solders.keypair import Keypair

from weave_settlement.authentication.challenge_authentication import ChallengeAuthentication
from weave_settlement.authentication.session_authentication import SessionAuthentication
from weave_settlement.db import Session
from weave_settlement.load_secrets import (
    game_authority_key,
    rpc_timeout_seconds,
    solana_rpc_url,
    weave_mint,
    weave_program_id,
)
from weave_settlement.services.escrow import EscrowChain, EscrowReconciler
from weave_settlement.services.ledger_db import LedgerStore
from weave_settlement.services.ledger_rpc import LedgerRpc
from weave_settlement.services.rounds import RoundController
from weave_settlement.services.withdrawal import WithdrawalAuthorizer, load_authority_keypair

bearer_scheme = HTTPBearer(auto_error=False)

ledger_store = LedgerStore(Session)
ledger_rpc = LedgerRpc(Session)
escrow_chain = EscrowChain(solana_rpc_url, weave_program_id, weave_mint, timeout=rpc_timeout_seconds)
_authority: Optional[Keypair] = None


def install_authority(authority: Keypair) -> None:
    """Called once from the lifespan hook with the parsed authority keypair."""
    global _authority
    _authority = authority


def get_store() -> LedgerStore:
    return ledger_store


def get_ledger_rpc() -> LedgerRpc:
    return ledger_rpc


def get_chain() -> EscrowChain:
    return escrow_chain


def get_authority() -> Keypair:
    if _authority is None:
        install_authority(load_authority_keypair(game_authority_key))
    return _authority


def get_session_auth(store: LedgerStore = Depends(get_store)) -> SessionAuthentication:
    return SessionAuthentication(store)


def get_challenge_auth(
    store: LedgerStore = Depends(get_store),
    session_auth: SessionAuthentication = Depends(get_session_auth),
) -> ChallengeAuthentication:
    return ChallengeAuthentication(store, session_auth)


def get_reconciler(
    chain: EscrowChain = Depends(get_chain),
    rpc: LedgerRpc = Depends(get_ledger_rpc),
) -> EscrowReconciler:
    return EscrowReconciler(chain, rpc)


def get_round_controller(
    rpc: LedgerRpc = Depends(get_ledger_rpc),
    reconciler: EscrowReconciler = Depends(get_reconciler),
) -> RoundController:
    return RoundController(rpc, reconciler)


def get_withdrawal_authorizer(
    rpc: LedgerRpc = Depends(get_ledger_rpc),
    reconciler: EscrowReconciler = Depends(get_reconciler),
    authority: Keypair = Depends(get_authority),
) -> WithdrawalAuthorizer:
    return WithdrawalAuthorizer(rpc, reconciler, authority)


async def current_wallet(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session_auth: SessionAuthentication = Depends(get_session_auth),
) -> str:
    """Resolve `Authorization: Bearer <token>` to the session's wallet (401 otherwise)."""
    token = credentials.credentials if credentials else None
    return await session_auth.resolve(token)
