"""
Logging setup for the OAuth connection service.

Every handler on the root logger gets a filter that masks OAuth secrets
appearing as ``name=value`` pairs, so request URLs logged by third-party
libraries never leak authorization codes or tokens.
"""

import logging
import re
import sys

_NOISY_LOGGERS = ("httpx", "httpcore")
_SECRET_PARAMS = re.compile(
    r"\b(code|state|access_token|refresh_token|client_secret)=([^&\s\"']+)"
)


class OAuthSecretFilter(logging.Filter):
    """Replace the values of sensitive OAuth parameters with ``***``."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = _SECRET_PARAMS.sub(r"\1=***", message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with a consistent format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, OAuthSecretFilter) for f in handler.filters):
            handler.addFilter(OAuthSecretFilter())
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


__all__ = ["OAuthSecretFilter", "configure_logging"]
