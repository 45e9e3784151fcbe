import logging

from fastapi import APIRouter, Depends

from weave_settlement.authentication.challenge_authentication import ChallengeAuthentication
from weave_settlement.dependencies import get_challenge_auth
from weave_settlement.models.dc_models import (
    ChallengeModel,
    ChallengeRequestModel,
    SessionTokenModel,
    VerifyRequestModel,
)

auth_router = APIRouter()


class ChallengeAPI:
    @staticmethod
    @auth_router.post("/auth-nonce", response_model=ChallengeModel)
    async def issue_challenge(
        request: ChallengeRequestModel,
        challenge_auth: ChallengeAuthentication = Depends(get_challenge_auth),
    ):
        """Issue (or reuse) the login challenge a wallet has to sign

        Args:
            request (ChallengeRequestModel): {wallet}
            challenge_auth (ChallengeAuthentication): challenge issuer

        Returns:
            ChallengeModel: {wallet, nonce, expiresAt, message}
        """
        challenge = await challenge_auth.issue(request.wallet)
        logging.debug(f"Challenge for {challenge.wallet} expires at {challenge.expires_at}")
        return challenge

    @staticmethod
    @auth_router.post("/auth-verify", response_model=SessionTokenModel)
    async def verify_challenge(
        request: VerifyRequestModel,
        challenge_auth: ChallengeAuthentication = Depends(get_challenge_auth),
    ):
        return await challenge_auth.verify(request.wallet, request.message, request.signature)
