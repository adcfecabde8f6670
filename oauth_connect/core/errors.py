"""
Exception hierarchy for the OAuth connection lifecycle.

Every class carries a stable ``code`` for API responses and a
``user_message`` that is safe to show to an end user. Neither ever contains
client secrets or token values.
"""

from __future__ import annotations


class OAuthLifecycleError(Exception):
    """Base class for all connection lifecycle failures."""

    code = "oauth_error"
    user_message = "The connection could not be completed. Please reconnect."

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.user_message
        super().__init__(self.detail)


class StateError(OAuthLifecycleError):
    """The callback's state parameter could not be accepted."""

    code = "state_invalid"
    user_message = "This connection link is no longer valid. Please reconnect."


class StateMissingError(StateError):
    """No pending state is available (never sent, or lapsed)."""

    code = "state_missing"


class StateNotFoundError(StateError):
    """The state is unknown, tampered with, or issued to another user."""

    code = "state_not_found"


class StateAlreadyConsumedError(StateError):
    """The state was already used by an earlier callback."""

    code = "state_already_consumed"
    user_message = "This connection request was already completed."


class ExchangeError(OAuthLifecycleError):
    """The authorization code could not be exchanged for a token."""

    code = "exchange_failed"


class ExchangeNetworkError(ExchangeError):
    """The token endpoint could not be reached."""

    code = "exchange_network"
    user_message = "The provider could not be reached. Please try connecting again."


class ExchangeRejectedError(ExchangeError):
    """The provider refused the exchange."""

    code = "exchange_rejected"
    user_message = "The provider rejected the connection. Please reconnect."

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Token exchange rejected: {reason}")


class InvalidTokenFormatError(OAuthLifecycleError):
    """The provider returned something that is not a usable access token."""

    code = "invalid_token_format"


class StoreError(OAuthLifecycleError):
    """Persisting the token record failed."""

    code = "store_failed"


class InvalidTokenError(StoreError):
    """A write was attempted with a value that is not a valid token."""

    code = "store_invalid_token"


class PersistenceFailureError(StoreError):
    """The storage backend failed to write the record."""

    code = "store_persistence_failure"


__all__ = [
    "ExchangeError",
    "ExchangeNetworkError",
    "ExchangeRejectedError",
    "InvalidTokenError",
    "InvalidTokenFormatError",
    "OAuthLifecycleError",
    "PersistenceFailureError",
    "StateAlreadyConsumedError",
    "StateError",
    "StateMissingError",
    "StateNotFoundError",
    "StoreError",
]
