"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from oauth_connect.clients import AuthorizationUrlBuilder, SQLiteStore, TokenExchangeClient
from oauth_connect.core.config import get_settings
from oauth_connect.services import (
    OAuthLifecycleService,
    OAuthStateEncoder,
    StateTokenManager,
    TokenCipherService,
    TokenStore,
)
from oauth_connect.utils.http import RetryConfig


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_sqlite_store() -> SQLiteStore:
    """Provide the shared SQLite record store."""
    return SQLiteStore(_settings().database_path)


@lru_cache()
def get_oauth_state_encoder() -> OAuthStateEncoder:
    """Provide an OAuth state encoder derived from the client secret."""
    return OAuthStateEncoder(secret_key=_settings().provider.client_secret)


@lru_cache()
def get_state_token_manager() -> StateTokenManager:
    return StateTokenManager(
        store=get_sqlite_store(),
        encoder=get_oauth_state_encoder(),
        ttl_seconds=_settings().oauth.state_ttl_seconds,
    )


@lru_cache()
def get_authorization_url_builder() -> AuthorizationUrlBuilder:
    return AuthorizationUrlBuilder(
        authorization_url=str(_settings().provider.authorization_url),
        state_manager=get_state_token_manager(),
    )


@lru_cache()
def get_token_exchange_client() -> TokenExchangeClient:
    """Create a singleton token exchange client with one bounded retry."""
    settings = _settings()
    return TokenExchangeClient(
        token_url=str(settings.provider.token_url),
        timeout_seconds=settings.oauth.exchange_timeout_seconds,
        retry_config=RetryConfig(
            attempts=2, backoff_seconds=settings.oauth.retry_backoff_seconds
        ),
    )


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    settings = _settings()
    secret = settings.security.token_encryption_secret or settings.provider.client_secret
    return TokenCipherService(
        secret=secret,
        previous_secrets=settings.security.previous_token_encryption_secrets,
    )


@lru_cache()
def get_token_store() -> TokenStore:
    return TokenStore(store=get_sqlite_store(), cipher=get_token_cipher_service())


@lru_cache()
def get_lifecycle_service() -> OAuthLifecycleService:
    """Provide the OAuth connection lifecycle orchestrator."""
    return OAuthLifecycleService(
        state_manager=get_state_token_manager(),
        url_builder=get_authorization_url_builder(),
        exchange_client=get_token_exchange_client(),
        token_store=get_token_store(),
        record_store=get_sqlite_store(),
        default_scopes=_settings().oauth.scopes,
    )


__all__ = [
    "get_authorization_url_builder",
    "get_lifecycle_service",
    "get_oauth_state_encoder",
    "get_sqlite_store",
    "get_state_token_manager",
    "get_token_cipher_service",
    "get_token_exchange_client",
    "get_token_store",
]
