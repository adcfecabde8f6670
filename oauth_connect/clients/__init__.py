"""Expose constructed client wrappers."""

from .oauth_provider import AuthorizationUrlBuilder, TokenExchangeClient
from .sqlite_store import SQLiteStore

__all__ = [
    "AuthorizationUrlBuilder",
    "SQLiteStore",
    "TokenExchangeClient",
]
