"""Withdrawal authorization for the escrow program.

The ledger issues an idempotent ticket (same amount/nonce/expiry for the
same wallet within the TTL); this module re-checks it against the balance
and on-chain liquidity it just observed, then signs the 56-byte message
with the authority key the escrow program trusts.
"""

import json
import logging
from dataclasses import dataclass
from typing import Optional

from solders.keypair import Keypair
from solders.pubkey import Pubkey

from weave_settlement.domain.settlement_message import build_settlement_message
from weave_settlement.errors import ConfigurationError, StateError
from weave_settlement.models.dc_models import SettlementModel
from weave_settlement.services.escrow import EscrowReconciler
from weave_settlement.services.ledger_rpc import LedgerRpc

WITHDRAWAL_TTL_SECONDS = 120


def load_authority_keypair(raw: Optional[str]) -> Keypair:
    """Parse the authority secret key: a JSON array of 64 bytes or a base58 string.

    Raises:
        ConfigurationError: the key is absent or unparsable
    """
    if not raw or not raw.strip():
        raise ConfigurationError("Server missing GAME_AUTHORITY_KEY")
    raw = raw.strip()
    try:
        if raw.startswith("["):
            return Keypair.from_bytes(bytes(json.loads(raw)))
        return Keypair.from_base58_string(raw)
    except (ValueError, TypeError) as e:
        raise ConfigurationError(f"GAME_AUTHORITY_KEY is not a valid keypair: {e}") from e


@dataclass(frozen=True)
class WithdrawalAuthorization:
    wallet: str
    authorized_amount_raw: int
    nonce_raw: int
    expiry_unix: int


class WithdrawalAuthorizer:
    def __init__(
        self,
        rpc: LedgerRpc,
        reconciler: EscrowReconciler,
        authority: Keypair,
        ttl_seconds: int = WITHDRAWAL_TTL_SECONDS,
    ):
        self.rpc = rpc
        self.reconciler = reconciler
        self.authority = authority
        self.ttl_seconds = ttl_seconds

    @property
    def authority_pubkey(self) -> str:
        return str(self.authority.pubkey())

    async def prepare(self, wallet: str) -> WithdrawalAuthorization:
        """Request a withdraw-all ticket for the wallet's current play balance

        Args:
            wallet (str): session wallet

        Raises:
            StateError: active round, nothing to settle, or a ticket exceeding
                        the play balance or the redeemable vault + treasury

        Returns:
            WithdrawalAuthorization: amount, nonce and expiry to sign
        """
        amounts = await self.reconciler.reconcile_amounts(wallet)
        state = await self.rpc.session_state(wallet)
        if state.active_round_id is not None:
            raise StateError("Active round in progress; end or abort it before settling")

        play_balance_raw = state.play_balance_raw
        # A zero balance with a funded vault is still settled: it sweeps the vault to the house.
        if play_balance_raw <= 0 and amounts.vault_raw <= 0:
            raise StateError("Nothing to settle")

        ticket = await self.rpc.withdraw_prepare(wallet, max(play_balance_raw, 0), self.ttl_seconds)
        if ticket.authorized_amount_raw > play_balance_raw:
            logging.error(
                f"Withdrawal ticket for {wallet} exceeds play balance: "
                f"{ticket.authorized_amount_raw} > {play_balance_raw}"
            )
            raise StateError("Authorized amount exceeds play balance")
        if ticket.authorized_amount_raw > amounts.redeemable_raw:
            logging.error(
                f"Withdrawal ticket for {wallet} exceeds on-chain liquidity: "
                f"{ticket.authorized_amount_raw} > {amounts.redeemable_raw}"
            )
            raise StateError("Authorized amount exceeds on-chain liquidity")

        return WithdrawalAuthorization(
            wallet=wallet,
            authorized_amount_raw=ticket.authorized_amount_raw,
            nonce_raw=ticket.nonce_raw,
            expiry_unix=ticket.expiry_unix,
        )

    def sign(self, wallet: str, authorized_amount: int, nonce: int, expiry: int) -> SettlementModel:
        """Sign wallet | amount | nonce | expiry with the authority key."""
        try:
            message = build_settlement_message(bytes(Pubkey.from_string(wallet)), authorized_amount, nonce, expiry)
        except ValueError as e:
            raise StateError(str(e))
        signature = self.authority.sign_message(message)
        return SettlementModel(
            signature=list(bytes(signature)),
            authorized_amount=str(authorized_amount),
            nonce=str(nonce),
            expiry=str(expiry),
            authority_pubkey=self.authority_pubkey,
        )

    async def settle(self, wallet: str) -> SettlementModel:
        authorization = await self.prepare(wallet)
        settlement = self.sign(
            wallet,
            authorization.authorized_amount_raw,
            authorization.nonce_raw,
            authorization.expiry_unix,
        )
        logging.info(
            f"Approved withdrawal for {wallet}: amount_raw={authorization.authorized_amount_raw} "
            f"nonce={authorization.nonce_raw}"
        )
        return settlement
