"""
Domain models for the OAuth connection lifecycle.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

from oauth_connect.core.token_validator import is_valid_token


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ConnectionState(str, Enum):
    """Where a user stands in the connect flow."""

    UNCONNECTED = "unconnected"
    PENDING_AUTHORIZATION = "pending_authorization"
    CONNECTED = "connected"
    FAILED = "failed"
    EXPIRED = "expired"


class ClientCredentials(BaseModel):
    """OAuth client registration handed to the services by the caller."""

    model_config = ConfigDict(frozen=True)

    client_id: str
    client_secret: SecretStr
    redirect_uri: str


class AuthorizationState(BaseModel):
    """Anti-CSRF value issued when a user starts connecting."""

    model_config = ConfigDict(frozen=True)

    value: str
    user_id: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("created_at")
    @classmethod
    def _normalize_created_at(cls, value: datetime) -> datetime:
        return _as_utc(value)

    def is_expired(self, ttl: timedelta, *, now: datetime | None = None) -> bool:
        current = now or datetime.now(timezone.utc)
        return current - self.created_at > ttl


class RawTokenPayload(BaseModel):
    """Token endpoint response exactly as received; nothing here is trusted."""

    access_token: Any = Field(default=None, repr=False)
    expires_in: Any = None
    external_profile_id: Any = None
    raw: Dict[str, Any] = Field(default_factory=dict, repr=False)


class OAuthToken(BaseModel):
    """A validated access token owned by one user.

    Construction runs ``is_valid_token`` on ``value``, so booleans and
    boolean-like strings cannot produce an instance.
    """

    model_config = ConfigDict(frozen=True)

    value: str = Field(repr=False)
    expires_at: datetime
    external_profile_id: str = ""
    owner_user_id: str

    @field_validator("value", mode="before")
    @classmethod
    def _validate_value(cls, value: Any) -> str:
        if not is_valid_token(value):
            raise ValueError("value is not a well-formed access token")
        return value

    @field_validator("expires_at")
    @classmethod
    def _normalize_expires_at(cls, value: datetime) -> datetime:
        return _as_utc(value)

    def is_expired(self, *, now: datetime | None = None) -> bool:
        current = now or datetime.now(timezone.utc)
        return current >= self.expires_at


__all__ = [
    "AuthorizationState",
    "ClientCredentials",
    "ConnectionState",
    "OAuthToken",
    "RawTokenPayload",
]
