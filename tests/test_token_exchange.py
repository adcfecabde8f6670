from urllib.parse import parse_qs

import httpx
import pytest

from oauth_connect.core.errors import ExchangeNetworkError, ExchangeRejectedError

from conftest import SAMPLE_TOKEN, TOKEN_URL, make_exchange_client

REDIRECT_URI = "https://app.example.com/oauth/callback"


class TokenEndpoint:
    """Scripted token endpoint; each call pops the next reply."""

    def __init__(self, *replies) -> None:
        self.replies = list(replies)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply


async def _exchange(endpoint: TokenEndpoint, code: str = "auth-code"):
    client = make_exchange_client(endpoint)
    return await client.exchange(code, "client-123", "super-secret-value", REDIRECT_URI)


@pytest.mark.anyio
async def test_exchange_posts_form_and_returns_raw_payload() -> None:
    endpoint = TokenEndpoint(
        httpx.Response(
            200, json={"access_token": SAMPLE_TOKEN, "expires_in": 5184000, "sub": "member-9"}
        )
    )

    payload = await _exchange(endpoint)

    assert payload.access_token == SAMPLE_TOKEN
    assert payload.expires_in == 5184000
    assert payload.external_profile_id == "member-9"

    request = endpoint.requests[0]
    assert request.method == "POST"
    assert str(request.url) == TOKEN_URL
    form = {key: values[0] for key, values in parse_qs(request.content.decode()).items()}
    assert form == {
        "code": "auth-code",
        "client_id": "client-123",
        "client_secret": "super-secret-value",
        "redirect_uri": REDIRECT_URI,
        "grant_type": "authorization_code",
    }


@pytest.mark.anyio
async def test_payload_shape_is_not_interpreted() -> None:
    endpoint = TokenEndpoint(httpx.Response(200, json={"access_token": True, "expires_in": "soon"}))

    payload = await _exchange(endpoint)

    assert payload.access_token is True
    assert payload.expires_in == "soon"
    assert payload.external_profile_id is None


@pytest.mark.anyio
async def test_provider_rejection_is_not_retried() -> None:
    endpoint = TokenEndpoint(
        httpx.Response(
            400,
            json={"error": "invalid_grant", "error_description": "code already used"},
        )
    )

    with pytest.raises(ExchangeRejectedError) as excinfo:
        await _exchange(endpoint, code="bad")

    assert excinfo.value.reason == "invalid_grant: code already used"
    assert len(endpoint.requests) == 1


@pytest.mark.anyio
async def test_error_field_in_success_response_is_a_rejection() -> None:
    endpoint = TokenEndpoint(httpx.Response(200, json={"error": "access_denied"}))

    with pytest.raises(ExchangeRejectedError):
        await _exchange(endpoint)

    assert len(endpoint.requests) == 1


@pytest.mark.anyio
async def test_non_json_body_is_a_rejection() -> None:
    endpoint = TokenEndpoint(httpx.Response(200, text="<html>oops</html>"))

    with pytest.raises(ExchangeRejectedError):
        await _exchange(endpoint)


@pytest.mark.anyio
async def test_network_failure_is_retried_once() -> None:
    endpoint = TokenEndpoint(
        httpx.ConnectError("connection refused"),
        httpx.Response(200, json={"access_token": SAMPLE_TOKEN, "expires_in": 3600}),
    )

    payload = await _exchange(endpoint)

    assert payload.access_token == SAMPLE_TOKEN
    assert len(endpoint.requests) == 2


@pytest.mark.anyio
async def test_persistent_network_failure_surfaces_after_one_retry() -> None:
    endpoint = TokenEndpoint(httpx.ReadTimeout("timed out"))

    with pytest.raises(ExchangeNetworkError) as excinfo:
        await _exchange(endpoint)

    assert len(endpoint.requests) == 2
    assert "super-secret-value" not in str(excinfo.value)


@pytest.mark.anyio
async def test_bare_server_errors_count_as_network_failures() -> None:
    endpoint = TokenEndpoint(httpx.Response(503, text="unavailable"))

    with pytest.raises(ExchangeNetworkError):
        await _exchange(endpoint)

    assert len(endpoint.requests) == 2


@pytest.mark.anyio
async def test_missing_code_never_reaches_the_provider() -> None:
    endpoint = TokenEndpoint(httpx.Response(200, json={}))

    with pytest.raises(ExchangeRejectedError):
        await _exchange(endpoint, code="")

    assert endpoint.requests == []
