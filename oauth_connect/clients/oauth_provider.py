"""
OAuth provider utilities.

Builds the consent URL the browser is sent to and exchanges the returned
authorization code at the provider's token endpoint.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Iterable, Tuple
from urllib.parse import urlencode

import httpx

from oauth_connect.core.errors import ExchangeNetworkError, ExchangeRejectedError
from oauth_connect.models.oauth import AuthorizationState, RawTokenPayload
from oauth_connect.utils.http import RetryConfig, is_retryable_response, request_with_retry

if TYPE_CHECKING:
    from oauth_connect.services.state_tokens import StateTokenManager

logger = logging.getLogger(__name__)

# Providers disagree on where the member id goes; first match wins.
_PROFILE_ID_FIELDS = ("profile_id", "user_id", "sub", "id")
_MAX_REASON_LENGTH = 200


class AuthorizationUrlBuilder:
    """Compose the provider's authorization-request URL."""

    def __init__(self, *, authorization_url: str, state_manager: StateTokenManager) -> None:
        self._authorization_url = authorization_url
        self._states = state_manager

    def build(
        self,
        user_id: str,
        client_id: str,
        redirect_uri: str,
        scopes: Iterable[str],
    ) -> str:
        url, _ = self.build_with_state(user_id, client_id, redirect_uri, scopes)
        return url

    def build_with_state(
        self,
        user_id: str,
        client_id: str,
        redirect_uri: str,
        scopes: Iterable[str],
    ) -> Tuple[str, AuthorizationState]:
        """Issue a fresh state and return it alongside the consent URL."""
        state = self._states.generate(user_id)
        params = {
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": " ".join(scopes),
            "state": state.value,
        }
        separator = "&" if "?" in self._authorization_url else "?"
        return f"{self._authorization_url}{separator}{urlencode(params)}", state


class TokenExchangeClient:
    """Exchange authorization codes for access tokens."""

    def __init__(
        self,
        *,
        token_url: str,
        timeout_seconds: float = 10.0,
        retry_config: RetryConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token_url = token_url
        self._timeout = timeout_seconds
        self._retry = retry_config or RetryConfig(attempts=2)
        self._transport = transport

    async def exchange(
        self,
        code: str,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
    ) -> RawTokenPayload:
        """
        Exchange an authorization code for a raw token payload.

        Network-class failures are retried once; provider rejections never
        are, because the code is single use. The returned payload is not
        interpreted here.
        """
        if not code:
            raise ExchangeRejectedError("no authorization code was supplied")

        payload = {
            "code": code,
            "client_id": client_id,
            "client_secret": client_secret,
            "redirect_uri": redirect_uri,
            "grant_type": "authorization_code",
        }

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                response = await request_with_retry(
                    client.post,
                    self._token_url,
                    data=payload,
                    headers={"Accept": "application/json"},
                    retry_config=self._retry,
                )
            except httpx.TransportError as exc:
                logger.error("Token endpoint unreachable: %s", exc.__class__.__name__)
                raise ExchangeNetworkError(
                    f"Token endpoint unreachable ({exc.__class__.__name__})."
                ) from exc

        if is_retryable_response(response):
            logger.error("Token endpoint kept failing with HTTP %s", response.status_code)
            raise ExchangeNetworkError(
                f"Token endpoint unavailable (HTTP {response.status_code})."
            )

        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            logger.error("Token endpoint returned a non-JSON body (HTTP %s)", response.status_code)
            raise ExchangeRejectedError(f"malformed response (HTTP {response.status_code})")

        if "error" in body or not response.is_success:
            reason = _rejection_reason(body, response.status_code)
            logger.warning("Token exchange rejected: %s", reason)
            raise ExchangeRejectedError(reason)

        return RawTokenPayload(
            access_token=body.get("access_token"),
            expires_in=body.get("expires_in"),
            external_profile_id=_first_present(body, _PROFILE_ID_FIELDS),
            raw=body,
        )


def _first_present(body: Dict[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        if body.get(key) not in (None, ""):
            return body[key]
    return None


def _rejection_reason(body: Dict[str, Any], status_code: int) -> str:
    error = body.get("error")
    description = body.get("error_description")
    parts = [str(part) for part in (error, description) if part]
    reason = ": ".join(parts) if parts else f"HTTP {status_code}"
    return reason[:_MAX_REASON_LENGTH]


__all__ = ["AuthorizationUrlBuilder", "TokenExchangeClient"]
