"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_authorization_url_builder,
    get_lifecycle_service,
    get_oauth_state_encoder,
    get_sqlite_store,
    get_state_token_manager,
    get_token_cipher_service,
    get_token_exchange_client,
    get_token_store,
)
from .config import SettingsDependency, get_app_settings, get_client_credentials

__all__ = [
    "SettingsDependency",
    "get_app_settings",
    "get_authorization_url_builder",
    "get_client_credentials",
    "get_lifecycle_service",
    "get_oauth_state_encoder",
    "get_sqlite_store",
    "get_state_token_manager",
    "get_token_cipher_service",
    "get_token_exchange_client",
    "get_token_store",
]
