from pydantic import BaseModel, Field
from typing import List, Optional, Union


class ChallengeRequestModel(BaseModel):
    wallet: Optional[str] = None


class ChallengeModel(BaseModel):
    wallet: str
    nonce: str
    expires_at: str = Field(alias="expiresAt")
    message: str

    class Config:
        populate_by_name = True


class VerifyRequestModel(BaseModel):
    wallet: Optional[str] = None
    message: Optional[str] = None
    # Either a byte array or a base64 string.
    signature: Optional[Union[List[int], str]] = None


class SessionTokenModel(BaseModel):
    token: str
    wallet: str
    expires_at: str = Field(alias="expiresAt")

    class Config:
        populate_by_name = True


class SessionStateModel(BaseModel):
    wallet: str
    play_balance_raw: str = Field(alias="playBalanceRaw")
    play_balance_ui: str = Field(alias="playBalanceUi")
    escrow_observed_raw: str = Field(alias="escrowObservedRaw")
    needs_finalization: bool = Field(alias="needsFinalization")
    active_round_id: Optional[str] = Field(default=None, alias="activeRoundId")
    active_expires_at: Optional[str] = Field(default=None, alias="activeExpiresAt")

    class Config:
        populate_by_name = True


class RoundStartRequestModel(BaseModel):
    wager_ui: Optional[Union[int, float, str]] = Field(default=None, alias="wagerUi")

    class Config:
        populate_by_name = True


class RoundStartedModel(BaseModel):
    wallet: str
    round_id: str = Field(alias="roundId")
    play_balance_raw: str = Field(alias="playBalanceRaw")
    expires_at: str = Field(alias="expiresAt")
    wager_ui: str = Field(alias="wagerUi")

    class Config:
        populate_by_name = True


class RoundEndRequestModel(BaseModel):
    round_id: Optional[str] = Field(default=None, alias="roundId")
    streaks_ms: Optional[List[Union[int, float]]] = Field(default=None, alias="streaksMs")

    class Config:
        populate_by_name = True


class RoundSettledModel(BaseModel):
    wallet: str
    round_id: str = Field(alias="roundId")
    multiplier_milli: int = Field(alias="multiplierMilli")
    multiplier: float
    payout_raw: str = Field(alias="payoutRaw")
    payout_ui: str = Field(alias="payoutUi")
    play_balance_raw: str = Field(alias="playBalanceRaw")
    play_balance_ui: str = Field(alias="playBalanceUi")

    class Config:
        populate_by_name = True


class OkModel(BaseModel):
    ok: bool = True


class SettlementModel(BaseModel):
    """Signed withdrawal authorization, ready for on-chain submission."""

    signature: List[int]
    authorized_amount: str = Field(alias="authorizedAmount")
    nonce: str
    expiry: str
    authority_pubkey: str = Field(alias="authorityPubkey")
    status: str = "approved"

    class Config:
        populate_by_name = True


class HistoryItemModel(BaseModel):
    id: str
    ended_at: str = Field(alias="endedAt")
    wager_ui: str = Field(alias="wagerUi")
    payout_ui: str = Field(alias="payoutUi")
    multiplier: float

    class Config:
        populate_by_name = True


class HistoryModel(BaseModel):
    wallet: str
    items: List[HistoryItemModel]


class LeaderboardItemModel(BaseModel):
    wallet: str
    ended_at: str = Field(alias="endedAt")
    wager_ui: str = Field(alias="wagerUi")
    payout_ui: str = Field(alias="payoutUi")
    multiplier: float

    class Config:
        populate_by_name = True


class LeaderboardModel(BaseModel):
    items: List[LeaderboardItemModel]
