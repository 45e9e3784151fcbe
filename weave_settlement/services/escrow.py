"""On-chain escrow reads and ledger reconciliation.

The chain is a read-only oracle here. A vault that was never funded has
no token account yet, so a failed balance read counts as zero.
"""

import logging
from dataclasses import dataclass

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solders.pubkey import Pubkey

from weave_settlement.services.ledger_rpc import LedgerRpc

TOKEN_PROGRAM_ID = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")
ASSOCIATED_TOKEN_PROGRAM_ID = Pubkey.from_string("ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL")

PLAYER_STATE_SEED = b"player_state"
TREASURY_SEED = b"treasury"


def derive_ata(owner: Pubkey, mint: Pubkey) -> Pubkey:
    return Pubkey.find_program_address(
        [bytes(owner), bytes(TOKEN_PROGRAM_ID), bytes(mint)], ASSOCIATED_TOKEN_PROGRAM_ID
    )[0]


def player_state_pda(program_id: Pubkey, wallet: Pubkey) -> Pubkey:
    return Pubkey.find_program_address([PLAYER_STATE_SEED, bytes(wallet)], program_id)[0]


def treasury_pda(program_id: Pubkey) -> Pubkey:
    return Pubkey.find_program_address([TREASURY_SEED], program_id)[0]


@dataclass(frozen=True)
class VaultAmounts:
    vault_raw: int
    treasury_raw: int

    @property
    def redeemable_raw(self) -> int:
        """Upper bound of what the escrow program can actually pay out."""
        return self.vault_raw + self.treasury_raw


class EscrowChain:
    """Reads the player vault and treasury token balances."""

    def __init__(self, rpc_url: str, program_id: str, mint: str, timeout: float = 10):
        self.rpc_url = rpc_url
        self.program_id = Pubkey.from_string(program_id)
        self.mint = Pubkey.from_string(mint)
        self.timeout = timeout

    def vault_address(self, wallet: str) -> Pubkey:
        owner = player_state_pda(self.program_id, Pubkey.from_string(wallet))
        return derive_ata(owner, self.mint)

    def treasury_address(self) -> Pubkey:
        return derive_ata(treasury_pda(self.program_id), self.mint)

    async def _read_token_balance(self, client: AsyncClient, account: Pubkey) -> int:
        try:
            resp = await client.get_token_account_balance(account)
            return int(resp.value.amount)
        except Exception as e:
            logging.warning(f"Token balance read failed for {account}, treating as 0: {e}")
            return 0

    async def read_amounts(self, wallet: str) -> VaultAmounts:
        vault_account = self.vault_address(wallet)
        treasury_account = self.treasury_address()
        async with AsyncClient(self.rpc_url, commitment=Confirmed, timeout=self.timeout) as client:
            vault_raw = await self._read_token_balance(client, vault_account)
            treasury_raw = await self._read_token_balance(client, treasury_account)
        return VaultAmounts(vault_raw=vault_raw, treasury_raw=treasury_raw)


class EscrowReconciler:
    def __init__(self, chain: EscrowChain, rpc: LedgerRpc):
        self.chain = chain
        self.rpc = rpc

    async def reconcile_amounts(self, wallet: str) -> VaultAmounts:
        """Observe the vault and push its balance into the ledger.

        Returns both amounts so withdrawal preparation reads the chain once.
        """
        amounts = await self.chain.read_amounts(wallet)
        await self.rpc.sync_escrow(wallet, amounts.vault_raw)
        logging.debug(f"Reconciled escrow for {wallet}: vault={amounts.vault_raw}")
        return amounts

    async def reconcile(self, wallet: str) -> int:
        amounts = await self.reconcile_amounts(wallet)
        return amounts.vault_raw
