"""Pytest configuration shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
except ImportError:  # pragma: no cover - tests/ is not a package
    import _bootstrap  # type: ignore # noqa: F401

import httpx
import pytest

from oauth_connect.clients import AuthorizationUrlBuilder, SQLiteStore, TokenExchangeClient
from oauth_connect.models.oauth import ClientCredentials
from oauth_connect.services import (
    OAuthStateEncoder,
    StateTokenManager,
    TokenCipherService,
    TokenStore,
)
from oauth_connect.utils.http import RetryConfig

AUTHORIZATION_URL = "https://provider.example/oauth/authorize"
TOKEN_URL = "https://provider.example/oauth/token"
SAMPLE_TOKEN = "AQGZ_rN4xY_z7mPs1k2h9Y4sNpQrXtUvWxYzAbCdEfGhIjKlMnOpQrStUvWx"


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def record_store(tmp_path) -> SQLiteStore:
    return SQLiteStore(str(tmp_path / "oauth.sqlite3"))


@pytest.fixture
def state_encoder() -> OAuthStateEncoder:
    return OAuthStateEncoder(secret_key="state-signing-secret")


@pytest.fixture
def state_manager(record_store, state_encoder) -> StateTokenManager:
    return StateTokenManager(store=record_store, encoder=state_encoder, ttl_seconds=900)


@pytest.fixture
def url_builder(state_manager) -> AuthorizationUrlBuilder:
    return AuthorizationUrlBuilder(
        authorization_url=AUTHORIZATION_URL, state_manager=state_manager
    )


@pytest.fixture
def cipher() -> TokenCipherService:
    return TokenCipherService(secret="token-encryption-secret")


@pytest.fixture
def token_store(record_store, cipher) -> TokenStore:
    return TokenStore(store=record_store, cipher=cipher)


@pytest.fixture
def credentials() -> ClientCredentials:
    return ClientCredentials(
        client_id="client-123",
        client_secret="super-secret-value",
        redirect_uri="https://app.example.com/oauth/callback",
    )


def make_exchange_client(handler) -> TokenExchangeClient:
    """Token exchange client talking to an in-process mock token endpoint."""
    return TokenExchangeClient(
        token_url=TOKEN_URL,
        timeout_seconds=1.0,
        retry_config=RetryConfig(attempts=2, backoff_seconds=0),
        transport=httpx.MockTransport(handler),
    )
