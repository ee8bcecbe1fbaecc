"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

import logging
from functools import lru_cache
from typing import Optional

from sonny.clients import GeminiClient, GmailClient, GoogleOAuthClient, OAuthStateEncoder
from sonny.core.config import OAUTH_START_PATH, get_settings
from sonny.services import (
    ActionDispatcher,
    AuthorizationFlowController,
    CredentialStore,
    InMemoryCredentialStore,
    ProfileService,
    SQLiteCredentialStore,
    TokenCipherService,
    VoiceReplyService,
)

logger = logging.getLogger(__name__)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_oauth_state_encoder() -> Optional[OAuthStateEncoder]:
    """Provide a state encoder, or ``None`` when no signing secret exists."""
    settings = _settings()
    secret = settings.security.state_signing_secret or settings.google.client_secret
    if not secret:
        return None
    return OAuthStateEncoder(secret_key=secret)


@lru_cache()
def get_google_oauth_client() -> GoogleOAuthClient:
    """Create a singleton Google OAuth client."""
    settings = _settings()
    return GoogleOAuthClient(settings.google, settings.oauth)


@lru_cache()
def get_gmail_client() -> GmailClient:
    settings = _settings()
    return GmailClient(timeout_seconds=settings.oauth.provider_timeout_seconds)


@lru_cache()
def get_mind_client() -> Optional[GeminiClient]:
    """Provide the Gemini client when an API key is configured."""
    settings = _settings()
    if not settings.gemini.api_key:
        return None
    return GeminiClient(settings.gemini)


@lru_cache()
def get_token_cipher_service() -> Optional[TokenCipherService]:
    """Provide symmetric encryption helper for token storage."""
    settings = _settings()
    secret = settings.security.token_encryption_secret or settings.google.client_secret
    if not secret:
        return None
    return TokenCipherService(
        secret=secret,
        previous_secrets=settings.security.previous_token_encryption_secrets,
    )


@lru_cache()
def get_credential_store() -> CredentialStore:
    """Provide the process-wide credential store."""
    settings = _settings()
    path = settings.security.credential_store_path
    if not path:
        return InMemoryCredentialStore()
    cipher = get_token_cipher_service()
    if cipher is None:
        raise RuntimeError(
            "CREDENTIAL_STORE_PATH requires TOKEN_ENCRYPTION_SECRET or GOOGLE_CLIENT_SECRET."
        )
    logger.info("Using SQLite credential store at %s", path)
    return SQLiteCredentialStore(path, cipher=cipher)


def get_authorization_controller() -> AuthorizationFlowController:
    return AuthorizationFlowController(
        oauth_client=get_google_oauth_client(),
        state_encoder=get_oauth_state_encoder(),
        store=get_credential_store(),
        oauth_settings=_settings().oauth,
    )


def get_action_dispatcher() -> ActionDispatcher:
    return ActionDispatcher(
        store=get_credential_store(),
        gmail_client=get_gmail_client(),
        start_path=OAUTH_START_PATH,
    )


def get_profile_service() -> ProfileService:
    return ProfileService(
        store=get_credential_store(),
        oauth_client=get_google_oauth_client(),
        start_path=OAUTH_START_PATH,
    )


def get_voice_reply_service() -> VoiceReplyService:
    return VoiceReplyService(get_mind_client())


__all__ = [
    "get_action_dispatcher",
    "get_authorization_controller",
    "get_credential_store",
    "get_gmail_client",
    "get_google_oauth_client",
    "get_mind_client",
    "get_oauth_state_encoder",
    "get_profile_service",
    "get_token_cipher_service",
    "get_voice_reply_service",
]
