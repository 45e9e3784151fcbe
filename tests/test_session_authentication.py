import unittest
from unittest import mock

from tests.fakes import FakeClock, make_store
from weave_settlement.authentication.session_authentication import SessionAuthentication
from weave_settlement.domain.session_rules import SESSION_LIFETIME
from weave_settlement.domain.timestamps import as_utc
from weave_settlement.errors import AuthError


class TestSessionAuthentication(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.engine, self.store = await make_store()
        self.clock = FakeClock()
        self.auth = SessionAuthentication(self.store, clock=self.clock)
        self.wallet = "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin"

    async def asyncTearDown(self):
        await self.engine.dispose()

    async def test_issue_and_resolve(self):
        session_data = await self.auth.issue(self.wallet)
        self.assertEqual(session_data.expires_at, self.clock.now + SESSION_LIFETIME)
        self.assertEqual(await self.auth.resolve(session_data.token), self.wallet)

    async def test_resolve_rejects_missing_unknown_and_expired(self):
        with self.assertRaises(AuthError):
            await self.auth.resolve(None)
        with self.assertRaises(AuthError):
            await self.auth.resolve("deadbeef")
        session_data = await self.auth.issue(self.wallet)
        self.clock.advance(days=31)
        with self.assertRaises(AuthError) as ctx:
            await self.auth.resolve(session_data.token)
        self.assertEqual(ctx.exception.message, "Session expired")

    async def test_touch_is_written_at_most_once_per_minute(self):
        session_data = await self.auth.issue(self.wallet)
        with mock.patch.object(self.store, "refresh_session", wraps=self.store.refresh_session) as refresh:
            for _ in range(120):
                self.clock.advance(seconds=1)
                await self.auth.resolve(session_data.token)
            self.assertEqual(refresh.await_count, 1)

    async def test_expiry_only_advances_in_last_week(self):
        session_data = await self.auth.issue(self.wallet)
        original_expiry = session_data.expires_at

        self.clock.advance(days=22)
        await self.auth.resolve(session_data.token)
        stored = await self.store.read_session(session_data.token)
        self.assertEqual(as_utc(stored.expires_at), original_expiry)

        self.clock.advance(days=2)
        await self.auth.resolve(session_data.token)
        stored = await self.store.read_session(session_data.token)
        self.assertEqual(as_utc(stored.expires_at), self.clock.now + SESSION_LIFETIME)
        self.assertEqual(as_utc(stored.last_seen_at), self.clock.now)
