"""
FastAPI application entrypoint for the OAuth connection service.
"""

from __future__ import annotations

from fastapi import FastAPI

from oauth_connect.api.routes import router as api_router
from oauth_connect.core.config import get_settings
from oauth_connect.core.logging import configure_logging


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="OAuth Connect",
        version="0.1.0",
        description="Authorization-code connection lifecycle for an external provider.",
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
