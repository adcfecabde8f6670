"""
Persistence of per-user access tokens.

The store only accepts ``OAuthToken`` instances that pass ``is_valid_token``
and centralizes expiry: a record read past its ``token_expires_at`` is
reported as absent even though it stays in the database.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, Optional

from oauth_connect.core.errors import InvalidTokenError, PersistenceFailureError
from oauth_connect.core.token_validator import is_valid_token
from oauth_connect.models.oauth import OAuthToken
from oauth_connect.services.token_cipher import TokenCipherService, TokenDecryptionError

if TYPE_CHECKING:
    from oauth_connect.clients.sqlite_store import SQLiteStore

logger = logging.getLogger(__name__)

_TOKEN_SORT_KEY = "oauth#token"


def _partition(owner_user_id: str) -> str:
    return f"user#{owner_user_id}"


class TokenStore:
    """Reads and writes the single live token record of each user."""

    def __init__(self, *, store: SQLiteStore, cipher: TokenCipherService) -> None:
        self._store = store
        self._cipher = cipher

    def persist(self, owner_user_id: str, token: OAuthToken) -> None:
        """Replace the user's token record in one write.

        Raises ``InvalidTokenError`` before touching storage when ``token`` is
        not a valid ``OAuthToken`` (including instances assembled with
        ``model_construct``), and ``PersistenceFailureError`` when the write
        itself fails.
        """
        if not isinstance(token, OAuthToken) or not is_valid_token(
            getattr(token, "value", None)
        ):
            logger.error("Rejected invalid token write for user %s", owner_user_id)
            raise InvalidTokenError("Refusing to store a value that is not an access token.")

        expires_at = getattr(token, "expires_at", None)
        if not isinstance(expires_at, datetime):
            raise InvalidTokenError("Token has no usable expiry.")
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)

        if token.owner_user_id != owner_user_id:
            raise InvalidTokenError("Token belongs to a different user.")

        record: Dict[str, Any] = {
            "pk": _partition(owner_user_id),
            "sk": _TOKEN_SORT_KEY,
            "owner_user_id": owner_user_id,
            "token": self._cipher.encrypt(token.value),
            "token_expires_at": expires_at.isoformat(),
            "external_profile_id": str(token.external_profile_id or ""),
            "connected": not token.is_expired(),
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self._store.put_item(record)
        except sqlite3.Error as exc:
            logger.error("Failed to persist token for user %s: %s", owner_user_id, exc)
            raise PersistenceFailureError("Token record could not be saved.") from exc

        logger.info(
            "Stored token for user %s (expires %s)", owner_user_id, record["token_expires_at"]
        )

    def fetch(self, owner_user_id: str, *, now: datetime | None = None) -> Optional[OAuthToken]:
        """Return the user's token, or None when absent or expired."""
        token = self._load(owner_user_id)
        if token is None:
            return None
        if token.is_expired(now=now):
            logger.debug("Token for user %s is past its expiry", owner_user_id)
            return None
        return token

    def has_record(self, owner_user_id: str) -> bool:
        return self._get_record(owner_user_id) is not None

    def delete(self, owner_user_id: str) -> None:
        self._store.delete_item(partition_key=_partition(owner_user_id), sort_key=_TOKEN_SORT_KEY)
        logger.info("Deleted token for user %s", owner_user_id)

    def _get_record(self, owner_user_id: str) -> Optional[Dict[str, Any]]:
        return self._store.get_item(
            partition_key=_partition(owner_user_id), sort_key=_TOKEN_SORT_KEY
        )

    def _load(self, owner_user_id: str) -> Optional[OAuthToken]:
        record = self._get_record(owner_user_id)
        if not record or record.get("connected") is not True:
            return None

        try:
            return OAuthToken(
                value=self._cipher.decrypt(record["token"]),
                expires_at=datetime.fromisoformat(record["token_expires_at"]),
                external_profile_id=record.get("external_profile_id") or "",
                owner_user_id=owner_user_id,
            )
        except (TokenDecryptionError, KeyError, TypeError, ValueError) as exc:
            # Validation errors echo their input, so only the type is logged.
            logger.warning(
                "Unreadable token record for user %s: %s", owner_user_id, exc.__class__.__name__
            )
            return None


__all__ = ["TokenStore"]
