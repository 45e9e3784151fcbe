import base64
import binascii
import logging
import secrets
from datetime import datetime
from typing import Callable, List, Optional, Union
from uuid import uuid4

from solders.pubkey import Pubkey
from solders.signature import Signature

from weave_settlement.authentication.session_authentication import SessionAuthentication, utc_now
from weave_settlement.domain.challenge_message import build_challenge_message, parse_challenge_message
from weave_settlement.domain.session_rules import CHALLENGE_LIFETIME, is_expired
from weave_settlement.domain.timestamps import format_timestamp
from weave_settlement.errors import AuthError, ValidationError
from weave_settlement.models.dc_models import ChallengeModel, SessionTokenModel
from weave_settlement.models.schema_models import ChallengeSchema
from weave_settlement.services.ledger_db import LedgerStore

SIGNATURE_LENGTH = 64


def parse_wallet(wallet: Optional[str]) -> Pubkey:
    """Check that `wallet` is a well-formed base58 public key."""
    if not wallet:
        raise ValidationError("Missing wallet")
    try:
        return Pubkey.from_string(wallet)
    except ValueError:
        raise ValidationError("Invalid wallet public key")


def decode_signature(signature: Union[List[int], str, None]) -> bytes:
    """Accept a signature as a byte array or a base64 string."""
    if isinstance(signature, list):
        if not all(isinstance(b, int) and not isinstance(b, bool) and 0 <= b <= 255 for b in signature):
            raise ValidationError("Invalid signature format")
        return bytes(signature)
    if isinstance(signature, str):
        try:
            return base64.b64decode(signature, validate=True)
        except (binascii.Error, ValueError):
            raise ValidationError("Invalid signature format")
    raise ValidationError("Invalid signature format")


def verify_detached(pubkey: Pubkey, message: str, signature: bytes) -> bool:
    """Ed25519 detached verification over the UTF-8 bytes of `message`."""
    if len(signature) != SIGNATURE_LENGTH:
        return False
    return Signature.from_bytes(signature).verify(pubkey, message.encode("utf-8"))


class ChallengeAuthentication:
    """Password-less wallet login: issue a challenge, verify its signature, open a session."""

    def __init__(
        self,
        store: LedgerStore,
        session_auth: SessionAuthentication,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.session_auth = session_auth
        self.clock = clock

    async def issue(self, wallet: Optional[str]) -> ChallengeModel:
        """Return the wallet's live challenge, minting one if there is none

        An unexpired challenge is reused so a second prompt cannot invalidate a
        signature that is already in flight.

        Args:
            wallet (Optional[str]): base58 wallet public key

        Raises:
            ValidationError: the wallet is missing or not a public key

        Returns:
            ChallengeModel: nonce, expiry and the exact message the wallet must sign
        """
        parse_wallet(wallet)
        now = self.clock()

        challenge = await self.store.read_challenge(wallet)
        if challenge is None or is_expired(challenge.expires_at, now):
            minted = ChallengeSchema(wallet=wallet, nonce=str(uuid4()), expires_at=now + CHALLENGE_LIFETIME)
            await self.store.upsert_challenge(minted, now)
            # A concurrent issue may have stored its challenge first; hand out that one.
            challenge = await self.store.read_challenge(wallet) or minted
            logging.info(f"Issued login challenge for {wallet}")

        expires_at = format_timestamp(challenge.expires_at)
        return ChallengeModel(
            wallet=wallet,
            nonce=challenge.nonce,
            expires_at=expires_at,
            message=build_challenge_message(wallet, challenge.nonce, expires_at),
        )

    async def verify(
        self,
        wallet: Optional[str],
        message: Optional[str],
        signature: Union[List[int], str, None],
    ) -> SessionTokenModel:
        """Verify a signed challenge and open a session

        Args:
            wallet (Optional[str]): wallet claiming the challenge
            message (Optional[str]): the challenge text exactly as signed
            signature (Union[List[int], str, None]): detached Ed25519 signature

        Raises:
            ValidationError: missing fields, malformed message or signature, wallet mismatch
            AuthError: no live challenge, nonce mismatch, expired challenge, bad signature

        Returns:
            SessionTokenModel: bearer token and its expiry
        """
        if not wallet or not message or signature is None:
            raise ValidationError("Missing wallet/message/signature")
        pubkey = parse_wallet(wallet)

        parsed = parse_challenge_message(message)
        if parsed.wallet != wallet:
            raise ValidationError("Message wallet mismatch")
        if not parsed.nonce or not parsed.expires_at:
            raise ValidationError("Malformed message")
        signature_bytes = decode_signature(signature)

        challenge = await self.store.read_challenge(wallet)
        if challenge is None:
            raise AuthError("No active challenge for wallet")
        if not secrets.compare_digest(challenge.nonce.encode(), parsed.nonce.encode()):
            raise AuthError("Nonce mismatch")
        if is_expired(challenge.expires_at, self.clock()):
            raise AuthError("Challenge expired")
        if not verify_detached(pubkey, message, signature_bytes):
            raise AuthError("Invalid signature")

        # Single use: only the request that deletes the row gets a session.
        if not await self.store.consume_challenge(wallet, challenge.nonce):
            raise AuthError("Challenge already used")

        session_data = await self.session_auth.issue(wallet)
        await self.store.ensure_player(wallet)
        logging.info(f"Opened session for {wallet}")

        return SessionTokenModel(
            token=session_data.token,
            wallet=wallet,
            expires_at=format_timestamp(session_data.expires_at),
        )
