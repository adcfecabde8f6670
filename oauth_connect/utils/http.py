"""HTTP utilities providing bounded retry/backoff semantics."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)


class RetryConfig:
    def __init__(self, *, attempts: int = 2, backoff_seconds: float = 0.5) -> None:
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        self.attempts = attempts
        self.backoff_seconds = backoff_seconds


def is_retryable_response(response: httpx.Response) -> bool:
    """A bare 5xx means the server never processed the request."""
    return response.status_code >= 500 and not _carries_error_field(response)


def _carries_error_field(response: httpx.Response) -> bool:
    try:
        body = response.json()
    except ValueError:
        return False
    return isinstance(body, dict) and "error" in body


async def request_with_retry(
    func: Callable[..., Awaitable[httpx.Response]],
    *args,
    retry_config: RetryConfig | None = None,
    **kwargs,
) -> httpx.Response:
    """Call ``func`` and retry only on transport failures and bare 5xx replies.

    Any other response, including 4xx, is returned to the caller untouched.
    The last transport exception is re-raised once attempts run out.
    """
    config = retry_config or RetryConfig()
    attempt = 0
    last_exception: Exception | None = None
    last_response: httpx.Response | None = None

    while attempt < config.attempts:
        try:
            response = await func(*args, **kwargs)
        except httpx.TransportError as exc:
            last_exception = exc
            last_response = None
            logger.warning(
                "Transport error on attempt %s/%s: %s",
                attempt + 1,
                config.attempts,
                exc.__class__.__name__,
            )
        else:
            if not is_retryable_response(response):
                return response
            last_exception = None
            last_response = response
            logger.warning(
                "Server error %s on attempt %s/%s",
                response.status_code,
                attempt + 1,
                config.attempts,
            )

        attempt += 1
        if attempt < config.attempts:
            await asyncio.sleep(config.backoff_seconds * attempt)

    if last_response is not None:
        return last_response
    if last_exception is not None:
        raise last_exception
    raise RuntimeError("Request failed without raising an exception")


__all__ = ["RetryConfig", "is_retryable_response", "request_with_retry"]
