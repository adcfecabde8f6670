"""
FastAPI dependency utilities for injecting configuration.
"""

from functools import lru_cache

from fastapi import Depends

from oauth_connect.core.config import AppSettings, get_settings
from oauth_connect.models.oauth import ClientCredentials


@lru_cache()
def _settings_singleton() -> AppSettings:
    """Ensure configuration is created once per process."""
    return get_settings()


def get_app_settings() -> AppSettings:
    """FastAPI dependency returning application settings."""
    return _settings_singleton()


def get_client_credentials() -> ClientCredentials:
    """OAuth client registration passed into the lifecycle service per call."""
    return get_app_settings().provider.credentials()


SettingsDependency = Depends(get_app_settings)

__all__ = ["SettingsDependency", "get_app_settings", "get_client_credentials"]
