"""Service layer exports."""

from .lifecycle import CompletionResult, OAuthLifecycleService, TokenLookup
from .state_tokens import OAuthStateEncoder, StateTokenManager
from .token_cipher import TokenCipherService
from .token_store import TokenStore

__all__ = [
    "CompletionResult",
    "OAuthLifecycleService",
    "OAuthStateEncoder",
    "StateTokenManager",
    "TokenCipherService",
    "TokenLookup",
    "TokenStore",
]
