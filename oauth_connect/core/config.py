"""
Application configuration models and helpers.

Settings are read here and handed to the OAuth services as plain parameters;
the services themselves never consult the environment.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

from pydantic import AnyHttpUrl, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from oauth_connect.models.oauth import ClientCredentials


def _split_csv(value: str | tuple[str, ...] | list[str]) -> tuple[str, ...]:
    if isinstance(value, tuple):
        return value
    if isinstance(value, list):
        return tuple(value)
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class ProviderSettings(BaseSettings):
    """Client registration and endpoints of the external OAuth provider."""

    model_config = SettingsConfigDict(env_prefix="PROVIDER_")

    client_id: str
    client_secret: str
    redirect_uri: AnyHttpUrl
    authorization_url: AnyHttpUrl = Field(
        "https://www.linkedin.com/oauth/v2/authorization",
        description="Endpoint the browser is redirected to for consent.",
    )
    token_url: AnyHttpUrl = Field(
        "https://www.linkedin.com/oauth/v2/accessToken",
        description="Endpoint used to exchange authorization codes.",
    )

    def credentials(self) -> ClientCredentials:
        return ClientCredentials(
            client_id=self.client_id,
            client_secret=self.client_secret,
            redirect_uri=str(self.redirect_uri),
        )


class OAuthSettings(BaseSettings):
    """OAuth flow configuration."""

    model_config = SettingsConfigDict(env_prefix="OAUTH_")

    state_ttl_seconds: int = Field(900, gt=0)
    exchange_timeout_seconds: float = Field(10.0, gt=0)
    retry_backoff_seconds: float = Field(0.5, ge=0)
    scopes: Annotated[tuple[str, ...], NoDecode] = (
        "openid",
        "profile",
        "w_member_social",
    )

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing scopes as a comma-separated string."""
        return _split_csv(value)


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )
    previous_token_encryption_secrets: Annotated[tuple[str, ...], NoDecode] = Field(
        (),
        validation_alias="TOKEN_ENCRYPTION_PREVIOUS_SECRETS",
        description="Retired secrets still accepted when decrypting stored tokens.",
    )

    @field_validator("previous_token_encryption_secrets", mode="before")
    @classmethod
    def _split_previous_secrets(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        return _split_csv(value)


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    database_path: str = Field(
        "data/oauth_connect.sqlite3",
        validation_alias="DATABASE_PATH",
        description="SQLite file shared by every process serving the OAuth flow.",
    )
    frontend_base_url: Optional[HttpUrl] = Field(
        None,
        validation_alias="FRONTEND_BASE_URL",
        description="Optional URL for redirecting users back to the front-end.",
    )
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    provider: ProviderSettings = Field(default_factory=ProviderSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "OAuthSettings",
    "ProviderSettings",
    "SecuritySettings",
    "get_settings",
]
