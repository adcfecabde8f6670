"""Public schema exports."""

from .auth import AuthorizationResponse, ConnectionStatus, OAuthCallbackPayload

__all__ = [
    "AuthorizationResponse",
    "ConnectionStatus",
    "OAuthCallbackPayload",
]
