import unittest
from datetime import datetime, timezone
from uuid import uuid4

from fastapi.testclient import TestClient
from solders.keypair import Keypair

from tests.fakes import DummyChain, FakeLedgerRpc, create_all_tables, make_session_factory, ui
from weave_settlement.dependencies import get_authority, get_chain, get_ledger_rpc, get_store
from weave_settlement.main import app
from weave_settlement.models.schemas import Round
from weave_settlement.services.ledger_db import LedgerStore


class TestHttpSurface(unittest.TestCase):
    def setUp(self):
        self.engine, Session = make_session_factory()
        self.store = LedgerStore(Session)
        self.rpc = FakeLedgerRpc()
        self.chain = DummyChain(treasury_raw=ui(10_000))
        self.authority = Keypair()

        app.dependency_overrides[get_store] = lambda: self.store
        app.dependency_overrides[get_ledger_rpc] = lambda: self.rpc
        app.dependency_overrides[get_chain] = lambda: self.chain
        app.dependency_overrides[get_authority] = lambda: self.authority
        self.addCleanup(app.dependency_overrides.clear)

        self.client = TestClient(app)
        self.client.__enter__()
        self.addCleanup(self.client.__exit__, None, None, None)
        self.client.portal.call(create_all_tables, self.engine)
        self.addCleanup(self.client.portal.call, self.engine.dispose)

    def login(self, keypair: Keypair) -> dict:
        wallet = str(keypair.pubkey())
        challenge = self.client.post("/auth-nonce", json={"wallet": wallet})
        self.assertEqual(challenge.status_code, 200)
        message = challenge.json()["message"]
        signature = list(bytes(keypair.sign_message(message.encode("utf-8"))))
        response = self.client.post(
            "/auth-verify", json={"wallet": wallet, "message": message, "signature": signature}
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["wallet"], wallet)
        self.assertTrue(body["expiresAt"].endswith("Z"))
        return {"Authorization": f"Bearer {body['token']}"}

    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.json(), {"status": "healthy"})

    def test_auth_nonce_requires_wallet(self):
        response = self.client.post("/auth-nonce", json={})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "Missing wallet"})

    def test_auth_verify_bad_signature_is_401(self):
        keypair = Keypair()
        wallet = str(keypair.pubkey())
        message = self.client.post("/auth-nonce", json={"wallet": wallet}).json()["message"]
        signature = list(bytes(Keypair().sign_message(message.encode("utf-8"))))
        response = self.client.post(
            "/auth-verify", json={"wallet": wallet, "message": message, "signature": signature}
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"error": "Invalid signature"})

    def test_bearer_is_required(self):
        self.assertEqual(self.client.post("/session-state").status_code, 401)
        response = self.client.post("/session-state", headers={"Authorization": "Bearer nope"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"error": "Invalid session token"})

    def test_malformed_authorization_header_is_401(self):
        for header in ["Basic xyz", "Bearer", "token-without-scheme"]:
            response = self.client.post("/session-state", headers={"Authorization": header})
            self.assertEqual(response.status_code, 401, header)
            self.assertEqual(response.json(), {"error": "Missing Authorization bearer token"})

    def test_session_state_reconciles_escrow(self):
        keypair = Keypair()
        self.chain.vaults[str(keypair.pubkey())] = ui(5000) + 250_000_000
        headers = self.login(keypair)
        body = self.client.post("/session-state", headers=headers).json()
        self.assertEqual(body["playBalanceRaw"], str(ui(5000) + 250_000_000))
        self.assertEqual(body["playBalanceUi"], "5000.25")
        self.assertEqual(body["escrowObservedRaw"], str(ui(5000) + 250_000_000))
        self.assertFalse(body["needsFinalization"])
        self.assertIsNone(body["activeRoundId"])

    def test_round_flow(self):
        keypair = Keypair()
        self.chain.vaults[str(keypair.pubkey())] = ui(5000)
        headers = self.login(keypair)

        started = self.client.post("/round-start", json={"wagerUi": 1000}, headers=headers)
        self.assertEqual(started.status_code, 200)
        started = started.json()
        self.assertEqual(started["playBalanceRaw"], str(ui(4000)))
        self.assertEqual(started["wagerUi"], "1000")

        again = self.client.post("/round-start", json={"wagerUi": 1}, headers=headers)
        self.assertEqual(again.status_code, 400)

        state = self.client.post("/session-state", headers=headers).json()
        self.assertEqual(state["activeRoundId"], started["roundId"])

        ended = self.client.post(
            "/round-end", json={"roundId": started["roundId"], "streaksMs": [22000]}, headers=headers
        ).json()
        self.assertEqual(ended["multiplierMilli"], 1500)
        self.assertEqual(ended["multiplier"], 1.5)
        self.assertEqual(ended["payoutUi"], "1500")
        self.assertEqual(ended["playBalanceUi"], "5500")

    def test_round_abort(self):
        keypair = Keypair()
        self.chain.vaults[str(keypair.pubkey())] = ui(10)
        headers = self.login(keypair)
        self.client.post("/round-start", json={"wagerUi": "2.5"}, headers=headers)
        response = self.client.post("/round-abort", headers=headers)
        self.assertEqual(response.json(), {"ok": True})

    def test_round_start_validation(self):
        headers = self.login(Keypair())
        missing = self.client.post("/round-start", json={}, headers=headers)
        self.assertEqual(missing.status_code, 400)
        self.assertEqual(missing.json(), {"error": "Missing wagerUi"})

        not_json = self.client.post(
            "/round-start", content=b"{", headers={**headers, "Content-Type": "application/json"}
        )
        self.assertEqual(not_json.status_code, 400)
        self.assertIn("error", not_json.json())

    def test_settle_game(self):
        keypair = Keypair()
        wallet = str(keypair.pubkey())
        self.chain.vaults[wallet] = ui(5000)
        headers = self.login(keypair)

        first = self.client.post("/settle-game", headers=headers).json()
        second = self.client.post("/settle-game", headers=headers).json()
        self.assertEqual(first["status"], "approved")
        self.assertEqual(first["authorityPubkey"], str(self.authority.pubkey()))
        self.assertEqual(first["authorizedAmount"], str(ui(5000)))
        self.assertEqual(len(first["signature"]), 64)
        self.assertEqual(
            (first["authorizedAmount"], first["nonce"], first["expiry"]),
            (second["authorizedAmount"], second["nonce"], second["expiry"]),
        )

    def test_settle_game_with_nothing_to_settle(self):
        headers = self.login(Keypair())
        response = self.client.post("/settle-game", headers=headers)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "Nothing to settle"})

    def test_history_and_leaderboard(self):
        keypair = Keypair()
        wallet = str(keypair.pubkey())
        headers = self.login(keypair)

        async def add_round():
            async with self.store.Session() as session:
                session.add(
                    Round(
                        id=uuid4(),
                        wallet=wallet,
                        wager_raw=ui(100),
                        multiplier_milli=3500,
                        payout_raw=ui(350),
                        status="settled",
                        ended_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
                    )
                )
                await session.commit()

        self.client.portal.call(add_round)

        history = self.client.get("/history", headers=headers).json()
        self.assertEqual(history["wallet"], wallet)
        self.assertEqual(history["items"][0]["payoutUi"], "350")
        self.assertEqual(history["items"][0]["endedAt"], "2026-01-01T00:00:00.000Z")

        board = self.client.get("/leaderboard").json()
        self.assertEqual(board["items"][0]["wallet"], f"{wallet[:4]}…{wallet[-4:]}")
        self.assertEqual(board["items"][0]["multiplier"], 3.5)

    def test_cors_preflight(self):
        response = self.client.options(
            "/round-start",
            headers={
                "Origin": "https://play.example",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Authorization, Content-Type",
            },
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.headers["access-control-allow-origin"], "*")
