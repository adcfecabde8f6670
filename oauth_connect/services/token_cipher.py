"""
At-rest encryption for stored access tokens.

New ciphertext is always produced with the current secret. Retired secrets
stay readable so the encryption secret can be rotated without forcing every
user to reconnect.
"""

from __future__ import annotations

import base64
import hashlib
from typing import Iterable

from cryptography.fernet import Fernet, InvalidToken, MultiFernet


class TokenDecryptionError(ValueError):
    """Raised when a stored ciphertext matches none of the configured secrets."""


def _fernet_for(secret: str) -> Fernet:
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


class TokenCipherService:
    """Fernet cipher keyed by the current secret, falling back to retired ones."""

    def __init__(self, *, secret: str, previous_secrets: Iterable[str] = ()) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        retired = [_fernet_for(old) for old in previous_secrets if old and old != secret]
        self._fernet = MultiFernet([_fernet_for(secret), *retired])

    def encrypt(self, token_value: str) -> str:
        return self._fernet.encrypt(token_value.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("utf-8"))
        except (InvalidToken, AttributeError) as exc:
            raise TokenDecryptionError("Stored token could not be decrypted.") from exc
        return plaintext.decode("utf-8")


__all__ = ["TokenCipherService", "TokenDecryptionError"]
