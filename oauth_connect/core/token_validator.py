"""
Shape check applied to every access token before it can be stored.

Each write path that persists a credential goes through ``is_valid_token``.
"""

from __future__ import annotations

from typing import Any

MIN_TOKEN_LENGTH = 10

# Placeholders a loosely typed form or storage layer can leave behind.
_BOOLEAN_LITERALS = frozenset({"true", "false"})


def is_valid_token(candidate: Any) -> bool:
    """Return True when ``candidate`` looks like a provider-issued access token.

    The length floor is a sanity check, not a security bound.
    """
    if candidate is None or candidate == "":
        return False
    # bool is rejected explicitly: True/False must never pass as credentials.
    if isinstance(candidate, bool) or not isinstance(candidate, str):
        return False
    if candidate in _BOOLEAN_LITERALS:
        return False
    return len(candidate) >= MIN_TOKEN_LENGTH


__all__ = ["MIN_TOKEN_LENGTH", "is_valid_token"]
