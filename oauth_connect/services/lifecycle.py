"""
Orchestrates the connect flow for one user at a time.

``initiate`` issues a state and consent URL, ``complete`` turns the callback's
code into a stored token, and ``get_usable_token`` tells callers whether a
live token exists or the user has to reconnect.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Iterable, Optional, Sequence, Tuple

from oauth_connect.core.errors import InvalidTokenFormatError, OAuthLifecycleError, StateError
from oauth_connect.core.token_validator import is_valid_token
from oauth_connect.models.oauth import (
    AuthorizationState,
    ClientCredentials,
    ConnectionState,
    OAuthToken,
    RawTokenPayload,
)
from oauth_connect.schemas.auth import ConnectionStatus

if TYPE_CHECKING:
    from oauth_connect.clients.oauth_provider import AuthorizationUrlBuilder, TokenExchangeClient
    from oauth_connect.clients.sqlite_store import SQLiteStore
    from oauth_connect.services.state_tokens import StateTokenManager
    from oauth_connect.services.token_store import TokenStore

logger = logging.getLogger(__name__)

_STATUS_SORT_KEY = "oauth#status"
# Anything beyond this is treated as a malformed lifetime.
_MAX_LIFETIME_SECONDS = 10 * 365 * 24 * 3600


@dataclass(slots=True)
class CompletionResult:
    """Outcome of a callback: connected with a token, or failed with an error."""

    state: ConnectionState
    token: Optional[OAuthToken] = None
    error: Optional[OAuthLifecycleError] = None

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED


@dataclass(slots=True)
class TokenLookup:
    """Read-side answer: a usable token, or the reason there is none."""

    state: ConnectionState
    token: Optional[OAuthToken] = None

    @property
    def usable(self) -> bool:
        return self.token is not None


class OAuthLifecycleService:
    """Coordinates state issuance, code exchange, validation and storage."""

    def __init__(
        self,
        *,
        state_manager: StateTokenManager,
        url_builder: AuthorizationUrlBuilder,
        exchange_client: TokenExchangeClient,
        token_store: TokenStore,
        record_store: SQLiteStore,
        default_scopes: Sequence[str] = (),
    ) -> None:
        self._states = state_manager
        self._urls = url_builder
        self._exchange = exchange_client
        self._tokens = token_store
        self._records = record_store
        self._default_scopes = tuple(default_scopes)

    def initiate(
        self,
        user_id: str,
        credentials: ClientCredentials,
        scopes: Iterable[str] | None = None,
    ) -> str:
        """Start (or restart) a connection attempt and return the consent URL."""
        url, _ = self.initiate_with_state(user_id, credentials, scopes)
        return url

    def initiate_with_state(
        self,
        user_id: str,
        credentials: ClientCredentials,
        scopes: Iterable[str] | None = None,
    ) -> Tuple[str, AuthorizationState]:
        url, state = self._urls.build_with_state(
            user_id,
            credentials.client_id,
            credentials.redirect_uri,
            tuple(scopes) if scopes is not None else self._default_scopes,
        )
        self._record_status(user_id, ConnectionState.PENDING_AUTHORIZATION)
        logger.info("OAuth authorization initiated for user %s", user_id)
        return url, state

    async def complete(
        self,
        code: str,
        received_state: str | None,
        user_id: str,
        credentials: ClientCredentials,
    ) -> CompletionResult:
        """Finish the flow. Stops at the first failing step.

        A state that does not validate for ``user_id`` fails the attempt but
        leaves the user's recorded status untouched.
        """
        try:
            self._states.validate(received_state, user_id)
        except StateError as exc:
            logger.warning("OAuth state rejected for user %s: %s", user_id, exc.code)
            return CompletionResult(state=ConnectionState.FAILED, error=exc)

        try:
            payload = await self._exchange.exchange(
                code,
                credentials.client_id,
                credentials.client_secret.get_secret_value(),
                credentials.redirect_uri,
            )
            token = self._token_from_payload(payload, user_id)
            self._tokens.persist(user_id, token)
        except OAuthLifecycleError as exc:
            logger.warning("OAuth completion failed for user %s: %s", user_id, exc.code)
            self._record_status(user_id, ConnectionState.FAILED, error_code=exc.code)
            return CompletionResult(state=ConnectionState.FAILED, error=exc)

        self._record_status(user_id, ConnectionState.CONNECTED)
        logger.info("OAuth connection completed for user %s", user_id)
        return CompletionResult(state=ConnectionState.CONNECTED, token=token)

    def get_usable_token(self, user_id: str) -> TokenLookup:
        token = self._tokens.fetch(user_id)
        if token is not None:
            return TokenLookup(state=ConnectionState.CONNECTED, token=token)
        if self._tokens.has_record(user_id):
            return TokenLookup(state=ConnectionState.EXPIRED)
        return TokenLookup(state=ConnectionState.UNCONNECTED)

    def status(self, user_id: str) -> ConnectionStatus:
        lookup = self.get_usable_token(user_id)
        if lookup.token is not None:
            return ConnectionStatus(
                user_id=user_id,
                state=ConnectionState.CONNECTED,
                connected=True,
                expires_at=lookup.token.expires_at,
                external_profile_id=lookup.token.external_profile_id or None,
            )

        marker = self._records.get_item(
            partition_key=f"user#{user_id}", sort_key=_STATUS_SORT_KEY
        ) or {}
        state = lookup.state
        # An attempt in flight or a failed retry is more specific than expired/unconnected.
        if marker.get("state") in (
            ConnectionState.PENDING_AUTHORIZATION.value,
            ConnectionState.FAILED.value,
        ):
            state = ConnectionState(marker["state"])
        return ConnectionStatus(
            user_id=user_id,
            state=state,
            last_error=marker.get("error_code") if state is ConnectionState.FAILED else None,
        )

    def disconnect(self, user_id: str) -> None:
        self._tokens.delete(user_id)
        self._records.delete_item(partition_key=f"user#{user_id}", sort_key=_STATUS_SORT_KEY)
        logger.info("OAuth connection removed for user %s", user_id)

    def _token_from_payload(self, payload: RawTokenPayload, user_id: str) -> OAuthToken:
        if not is_valid_token(payload.access_token):
            raise InvalidTokenFormatError("Provider returned a malformed access token.")

        lifetime = _lifetime_seconds(payload.expires_in)
        if lifetime is None:
            raise InvalidTokenFormatError("Provider returned an unusable token lifetime.")

        return OAuthToken(
            value=payload.access_token,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=lifetime),
            external_profile_id=_profile_id(payload.external_profile_id),
            owner_user_id=user_id,
        )

    def _record_status(
        self, user_id: str, state: ConnectionState, *, error_code: str | None = None
    ) -> None:
        self._records.put_item(
            {
                "pk": f"user#{user_id}",
                "sk": _STATUS_SORT_KEY,
                "state": state.value,
                "error_code": error_code,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }
        )


def _lifetime_seconds(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        seconds = int(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return seconds if 0 < seconds <= _MAX_LIFETIME_SECONDS else None


def _profile_id(value: Any) -> str:
    if isinstance(value, bool) or value is None:
        return ""
    if isinstance(value, (str, int)):
        return str(value)
    return ""


__all__ = ["CompletionResult", "OAuthLifecycleService", "TokenLookup"]
