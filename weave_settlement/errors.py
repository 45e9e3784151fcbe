"""Error taxonomy shared by every component.

Each error carries the HTTP status it maps to; `main.py` registers one
handler that renders them as ``{"error": message}``.
"""

from fastapi import status


class WeaveError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(WeaveError):
    """Malformed or missing input."""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(WeaveError):
    """Missing, invalid or expired token or challenge, or a bad signature."""

    status_code = status.HTTP_401_UNAUTHORIZED


class StateError(WeaveError):
    """Conflicting round state, insufficient balance or liquidity, out-of-range amount."""

    status_code = status.HTTP_400_BAD_REQUEST


class ExternalError(WeaveError):
    """A ledger or chain call failed or returned no rows."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class ConfigurationError(RuntimeError):
    """Required server configuration is missing. Raised at start-up, never per request."""


class LedgerRefusalError(ExternalError):
    """A stored procedure raised on purpose (e.g. round already active, insufficient balance)."""
