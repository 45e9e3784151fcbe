"""Challenge and session lifetime rules."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from weave_settlement.domain.timestamps import as_utc

CHALLENGE_LIFETIME = timedelta(minutes=5)
SESSION_LIFETIME = timedelta(days=30)
# Sessions with less than this left are pushed back out to SESSION_LIFETIME.
SESSION_EXTEND_THRESHOLD = timedelta(days=7)
# last_seen_at is written at most once per interval per token.
SESSION_TOUCH_INTERVAL = timedelta(seconds=60)


@dataclass(frozen=True)
class SessionRefresh:
    touch: bool
    extend: bool

    @property
    def needs_write(self) -> bool:
        return self.touch or self.extend


def is_expired(expires_at: datetime, now: datetime) -> bool:
    return as_utc(now) > as_utc(expires_at)


def plan_session_refresh(
    now: datetime,
    expires_at: datetime,
    last_seen_at: Optional[datetime],
) -> SessionRefresh:
    """Decide whether a resolved session needs a touch and/or an extension.

    Args:
        now (datetime): current time
        expires_at (datetime): stored session expiry
        last_seen_at (Optional[datetime]): last recorded activity, None if never touched

    Returns:
        SessionRefresh: which columns the single coalesced write must set
    """
    now = as_utc(now)
    should_touch = last_seen_at is None or now - as_utc(last_seen_at) > SESSION_TOUCH_INTERVAL
    should_extend = as_utc(expires_at) - now < SESSION_EXTEND_THRESHOLD
    return SessionRefresh(touch=should_touch, extend=should_extend)
