"""Login challenge text.

The wallet signs the exact UTF-8 bytes of this block, so building and
parsing must stay symmetric.
"""

from dataclasses import dataclass
from typing import Optional

CHALLENGE_TITLE = "StreamWeave Login"
WALLET_PREFIX = "Wallet: "
NONCE_PREFIX = "Nonce: "
EXPIRES_PREFIX = "Expires: "


@dataclass(frozen=True)
class ParsedChallenge:
    wallet: Optional[str]
    nonce: Optional[str]
    expires_at: Optional[str]


def build_challenge_message(wallet: str, nonce: str, expires_at: str) -> str:
    return "\n".join(
        [
            CHALLENGE_TITLE,
            f"{WALLET_PREFIX}{wallet}",
            f"{NONCE_PREFIX}{nonce}",
            f"{EXPIRES_PREFIX}{expires_at}",
        ]
    )


def _field(lines: list[str], prefix: str) -> Optional[str]:
    for line in lines:
        if line.startswith(prefix):
            return line[len(prefix):] or None
    return None


def parse_challenge_message(message: str) -> ParsedChallenge:
    """Pull wallet, nonce and expiry back out of a signed challenge.

    Missing fields come back as None; the caller decides what is fatal.
    """
    lines = [line.strip() for line in message.split("\n")]
    return ParsedChallenge(
        wallet=_field(lines, WALLET_PREFIX),
        nonce=_field(lines, NONCE_PREFIX),
        expires_at=_field(lines, EXPIRES_PREFIX),
    )
