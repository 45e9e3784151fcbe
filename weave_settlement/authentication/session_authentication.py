import argparse
import asyncio
import logging
import secrets
from datetime import datetime, timezone
from typing import Callable, Optional

from weave_settlement.domain.session_rules import (
    SESSION_LIFETIME,
    is_expired,
    plan_session_refresh,
)
from weave_settlement.errors import AuthError
from weave_settlement.models.schema_models import SessionSchema
from weave_settlement.services.ledger_db import LedgerStore


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionAuthentication:
    """Opaque bearer sessions with a sliding expiry."""

    def __init__(self, store: LedgerStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    async def issue(self, wallet: str) -> SessionSchema:
        """Mint a session for a wallet that has just proven key ownership

        Args:
            wallet (str): verified base58 wallet public key

        Returns:
            SessionSchema: the stored session, token included
        """
        now = self.clock()
        session_data = SessionSchema(
            token=secrets.token_hex(32),
            wallet=wallet,
            expires_at=now + SESSION_LIFETIME,
            last_seen_at=now,
        )
        await self.store.create_session(session_data)
        return session_data

    async def resolve(self, token: Optional[str]) -> str:
        """Resolve a bearer token to its wallet. This is called on every authenticated request

        Writes at most once: last_seen_at when the previous touch is older than
        the touch interval, plus a fresh expiry when little lifetime is left.

        Args:
            token (Optional[str]): token from the Authorization header, None if absent or malformed

        Raises:
            AuthError: no token, unknown token, or expired session

        Returns:
            str: wallet bound to the session
        """
        if not token:
            raise AuthError("Missing Authorization bearer token")

        session_data = await self.store.read_session(token)
        if session_data is None:
            raise AuthError("Invalid session token")

        now = self.clock()
        if is_expired(session_data.expires_at, now):
            raise AuthError("Session expired")

        refresh = plan_session_refresh(now, session_data.expires_at, session_data.last_seen_at)
        if refresh.needs_write:
            new_expires_at = now + SESSION_LIFETIME if refresh.extend else None
            await self.store.refresh_session(token, now, new_expires_at)
        return session_data.wallet


def get_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Session maintenance")
    parser.add_argument(
        "--purge-expired",
        action="store_true",
        help="Delete expired login challenges and sessions",
        required=True,
    )
    return parser


async def main() -> None:
    from weave_settlement.db import Session

    store = LedgerStore(Session)
    challenges, sessions = await store.delete_expired(utc_now())
    logging.info(f"Purged {challenges} challenges and {sessions} sessions")
    print(f"purged challenges={challenges} sessions={sessions}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    parser = get_parser()
    args = parser.parse_args()
    asyncio.run(main())
