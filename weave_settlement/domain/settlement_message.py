"""Withdrawal authorization message verified by the escrow program.

Layout (56 bytes):
    wallet pubkey (32) | authorized amount (u64 LE) | nonce (u64 LE) | expiry (u64 LE)
"""

PUBKEY_LENGTH = 32
U64_LENGTH = 8
U64_MAX = 2**64 - 1
MESSAGE_LENGTH = PUBKEY_LENGTH + 3 * U64_LENGTH


def pack_u64_le(value: int, name: str) -> bytes:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer")
    if value < 0 or value > U64_MAX:
        raise ValueError(f"{name} out of u64 range: {value}")
    return value.to_bytes(U64_LENGTH, "little")


def build_settlement_message(wallet: bytes, authorized_amount: int, nonce: int, expiry: int) -> bytes:
    if len(wallet) != PUBKEY_LENGTH:
        raise ValueError(f"wallet pubkey must be {PUBKEY_LENGTH} bytes, got {len(wallet)}")
    message = (
        bytes(wallet)
        + pack_u64_le(authorized_amount, "authorized_amount")
        + pack_u64_le(nonce, "nonce")
        + pack_u64_le(expiry, "expiry")
    )
    return message
