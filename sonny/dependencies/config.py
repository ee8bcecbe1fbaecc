"""
FastAPI dependency returning the validated application settings.
"""

from sonny.core.config import AppSettings, get_settings


def get_app_settings() -> AppSettings:
    """Settings are validated at startup and cached for the process lifetime."""
    return get_settings()


__all__ = ["get_app_settings"]
