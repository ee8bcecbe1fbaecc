"""
Application configuration models and helpers.

Centralizes settings management so every component receives an explicit
settings object at construction time instead of reading the environment ad hoc.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

import os

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def read_env_file(path: str | Path = ".env") -> dict[str, str]:
    """Parse key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return {}
    values: dict[str, str] = {}
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if key:
            values[key] = value.strip().strip('"').strip("'")
    return values


def _load_env_file(path: str = ".env") -> None:
    """Copy .env values into the process environment without overriding it."""
    for key, value in read_env_file(path).items():
        os.environ.setdefault(key, value)


_load_env_file()

OAUTH_START_PATH = "/oauth/provider/start"
OAUTH_CALLBACK_PATH = "/oauth/provider/callback"


class _EnvSettings(BaseSettings):
    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")


class GoogleSettings(_EnvSettings):
    """Configuration for the Google OAuth application.

    Every field is optional so the service can boot without a linked provider;
    the OAuth endpoints report a configuration error instead.
    """

    client_id: Optional[str] = Field(None, validation_alias="GOOGLE_CLIENT_ID")
    client_secret: Optional[str] = Field(None, validation_alias="GOOGLE_CLIENT_SECRET")
    redirect_uri: Optional[AnyHttpUrl] = Field(None, validation_alias="GOOGLE_REDIRECT_URI")

    @field_validator("client_id", "client_secret", "redirect_uri", mode="before")
    @classmethod
    def _blank_as_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def missing_fields(self) -> list[str]:
        """Return the environment names of unset provider values."""
        missing = []
        if not self.client_id:
            missing.append("GOOGLE_CLIENT_ID")
        if not self.client_secret:
            missing.append("GOOGLE_CLIENT_SECRET")
        if not self.redirect_uri:
            missing.append("GOOGLE_REDIRECT_URI")
        return missing


class OAuthSettings(_EnvSettings):
    """OAuth flow configuration."""

    state_ttl_seconds: int = Field(900, validation_alias="OAUTH_STATE_TTL", gt=0)
    provider_timeout_seconds: float = Field(
        10.0, validation_alias="PROVIDER_TIMEOUT_SECONDS", gt=0
    )
    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        (
            "https://www.googleapis.com/auth/gmail.send",
            "https://www.googleapis.com/auth/userinfo.email",
            "https://www.googleapis.com/auth/userinfo.profile",
            "openid",
        ),
        validation_alias="OAUTH_SCOPES",
    )

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing scopes as a comma-separated string."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(value)
        return tuple(scope.strip() for scope in value.split(",") if scope.strip())


class SecuritySettings(_EnvSettings):
    """Secrets and storage options guarding delegated credentials."""

    api_key: Optional[str] = Field(
        None,
        validation_alias="API_KEY",
        description="Static bearer key for privileged endpoints.",
    )
    state_signing_secret: Optional[str] = Field(
        None,
        validation_alias="STATE_SIGNING_SECRET",
        description="HMAC key for OAuth state tokens. Defaults to the client secret.",
    )
    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )
    previous_token_encryption_secrets: Annotated[tuple[str, ...], NoDecode] = Field(
        (),
        validation_alias="TOKEN_ENCRYPTION_PREVIOUS_SECRETS",
        description="Comma-separated retired secrets still accepted for decryption.",
    )
    credential_store_path: Optional[str] = Field(
        None,
        validation_alias="CREDENTIAL_STORE_PATH",
        description="SQLite file for credentials. In-memory storage when unset.",
    )

    @field_validator("previous_token_encryption_secrets", mode="before")
    @classmethod
    def _split_secrets(cls, value: str | tuple[str, ...] | list[str]) -> tuple[str, ...]:
        if isinstance(value, (tuple, list)):
            return tuple(value)
        return tuple(item.strip() for item in value.split(",") if item.strip())


class GeminiSettings(_EnvSettings):
    """Configuration for the mind service (Gemini) that writes spoken replies."""

    api_key: Optional[str] = Field(None, validation_alias="GEMINI_API_KEY")
    model_name: str = Field("gemini-1.5-flash", validation_alias="GEMINI_MODEL_NAME")


class AppSettings(_EnvSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(
        populate_by_name=True,
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    service_name: str = Field("Sonny Core", validation_alias="SERVICE_NAME")
    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    port: int = Field(3000, validation_alias="PORT", gt=0, lt=65536)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    google: GoogleSettings = Field(default_factory=GoogleSettings)
    gemini: GeminiSettings = Field(default_factory=GeminiSettings)

    def unconfigured_features(self) -> dict[str, list[str]]:
        """Map each optional feature to the settings it is still missing."""
        features: dict[str, list[str]] = {}
        if not self.security.api_key:
            features["bearer gate (all privileged endpoints reject)"] = ["API_KEY"]
        missing_google = self.google.missing_fields()
        if missing_google:
            features["account linking"] = missing_google
        if not self.gemini.api_key:
            features["mind service replies"] = ["GEMINI_API_KEY"]
        return features


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()


__all__ = [
    "OAUTH_CALLBACK_PATH",
    "OAUTH_START_PATH",
    "AppSettings",
    "GeminiSettings",
    "GoogleSettings",
    "OAuthSettings",
    "SecuritySettings",
    "get_settings",
    "read_env_file",
]
