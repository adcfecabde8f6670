"""
Issue and single-use validate OAuth ``state`` values.

A state value is an HMAC-signed payload naming the user who started the
flow. It is also recorded in the shared record store so the callback, which
may be served by another process, can look it up by value and consume it
exactly once.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import json
import logging
import secrets
from datetime import datetime, timedelta, timezone
from hashlib import sha256
from typing import TYPE_CHECKING, Any, Dict

from oauth_connect.core.errors import (
    StateAlreadyConsumedError,
    StateMissingError,
    StateNotFoundError,
)
from oauth_connect.models.oauth import AuthorizationState

if TYPE_CHECKING:
    from oauth_connect.clients.sqlite_store import SQLiteStore

logger = logging.getLogger(__name__)

_SIGNATURE_BYTES = 32
_NONCE_BYTES = 32
_STATE_PARTITION = "oauth#state"


class OAuthStateEncoder:
    """Encode and decode OAuth state values to guard against tampering."""

    def __init__(self, secret_key: str) -> None:
        if not secret_key:
            raise ValueError("State signing secret must be provided.")
        self._secret_key = secret_key.encode("utf-8")

    def encode(self, payload: Dict[str, Any]) -> str:
        serialized = json.dumps(payload, separators=(",", ":"), sort_keys=True)
        signature = hmac.new(self._secret_key, serialized.encode("utf-8"), sha256).digest()
        return base64.urlsafe_b64encode(signature + serialized.encode("utf-8")).decode("utf-8")

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            decoded = base64.urlsafe_b64decode(token.encode("utf-8"))
        except (binascii.Error, ValueError) as exc:
            raise StateNotFoundError("OAuth state is not valid base64.") from exc

        signature, serialized = decoded[:_SIGNATURE_BYTES], decoded[_SIGNATURE_BYTES:]
        expected_signature = hmac.new(self._secret_key, serialized, sha256).digest()
        if not hmac.compare_digest(signature, expected_signature):
            raise StateNotFoundError("Invalid OAuth state signature.")

        try:
            payload = json.loads(serialized)
        except ValueError as exc:
            raise StateNotFoundError("OAuth state payload is not valid JSON.") from exc
        if not isinstance(payload, dict):
            raise StateNotFoundError("OAuth state payload has an unexpected shape.")
        return payload


class StateTokenManager:
    """Generates states bound to a user and consumes them on callback."""

    def __init__(
        self,
        *,
        store: SQLiteStore,
        encoder: OAuthStateEncoder,
        ttl_seconds: int = 900,
    ) -> None:
        self._store = store
        self._encoder = encoder
        self._ttl = timedelta(seconds=ttl_seconds)

    def generate(self, user_id: str) -> AuthorizationState:
        if not user_id:
            raise ValueError("A user identifier is required to issue a state.")

        created_at = datetime.now(timezone.utc)
        value = self._encoder.encode(
            {
                "nonce": secrets.token_urlsafe(_NONCE_BYTES),
                "user_id": user_id,
                "issued_at": created_at.isoformat(),
            }
        )
        state = AuthorizationState(value=value, user_id=user_id, created_at=created_at)

        self._purge_expired(now=created_at)
        self._store.put_item(
            {
                "pk": _STATE_PARTITION,
                "sk": value,
                "user_id": user_id,
                "created_at": created_at.isoformat(),
            }
        )
        logger.debug("Issued OAuth state for user %s", user_id)
        return state

    def owner_of(self, received: str | None) -> str:
        """Return the user a correctly signed state was issued to."""
        if not received:
            raise StateMissingError("No OAuth state was supplied.")
        payload = self._encoder.decode(received)
        user_id = payload.get("user_id")
        if not isinstance(user_id, str) or not user_id:
            raise StateNotFoundError("OAuth state does not name a user.")
        return user_id

    def validate(self, received: str | None, user_id: str) -> None:
        """Consume ``received`` for ``user_id`` or raise a ``StateError``."""
        if not received:
            raise StateMissingError("No OAuth state was supplied.")

        payload = self._encoder.decode(received)
        if payload.get("user_id") != user_id:
            raise StateNotFoundError("OAuth state was issued to a different user.")

        now = datetime.now(timezone.utc)
        item, claimed = self._store.claim_item(
            partition_key=_STATE_PARTITION,
            sort_key=received,
            claimed_at=now.isoformat(),
        )
        if item is None:
            if self._issued_before_ttl(payload, now=now):
                raise StateMissingError("OAuth state has expired.")
            raise StateNotFoundError("OAuth state is unknown.")
        if item.get("user_id") != user_id:
            raise StateNotFoundError("OAuth state was issued to a different user.")
        if not claimed:
            logger.warning("Replayed OAuth state for user %s", user_id)
            raise StateAlreadyConsumedError("OAuth state was already used.")

        state = AuthorizationState(
            value=received,
            user_id=user_id,
            created_at=datetime.fromisoformat(item["created_at"]),
        )
        if state.is_expired(self._ttl, now=now):
            raise StateMissingError("OAuth state has expired.")

    def _issued_before_ttl(self, payload: Dict[str, Any], *, now: datetime) -> bool:
        try:
            issued_at = _parse_timestamp(payload["issued_at"])
        except (KeyError, TypeError, ValueError):
            return False
        return now - issued_at > self._ttl

    def _purge_expired(self, *, now: datetime) -> None:
        items = self._store.list_items_with_prefix(
            partition_key=_STATE_PARTITION, sort_key_prefix=""
        )
        for item in items:
            # Consumed entries are kept until they lapse so replays still
            # report as already consumed.
            if now - _parse_timestamp(item["created_at"]) > self._ttl:
                self._store.delete_item(partition_key=_STATE_PARTITION, sort_key=item["sk"])


def _parse_timestamp(raw: str) -> datetime:
    value = datetime.fromisoformat(raw)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


__all__ = ["OAuthStateEncoder", "StateTokenManager"]
