"""Schemas related to OAuth flows."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from oauth_connect.models.oauth import ConnectionState


class OAuthCallbackPayload(BaseModel):
    """Payload sent to complete the OAuth callback exchange."""

    code: str = Field(..., description="Authorization code returned by the provider.")
    state: str = Field(..., description="Opaque state token issued when starting OAuth.")
    user_id: Optional[str] = Field(
        None,
        description="User completing the flow. Recovered from the state when omitted.",
    )


class AuthorizationResponse(BaseModel):
    """Consent URL handed to clients that do not follow redirects."""

    authorization_url: str
    state: str = Field(..., description="State token the callback must echo back.")


class ConnectionStatus(BaseModel):
    """Connection summary for one user. Never includes the token itself."""

    user_id: str
    state: ConnectionState
    connected: bool = False
    expires_at: Optional[datetime] = None
    external_profile_id: Optional[str] = None
    last_error: Optional[str] = Field(
        None, description="Error code of the most recent failed attempt."
    )


__all__ = ["AuthorizationResponse", "ConnectionStatus", "OAuthCallbackPayload"]
