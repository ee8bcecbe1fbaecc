"""Expose dependency helpers for FastAPI routers."""

from .auth import ApiKeyDependency, require_api_key
from .clients import (
    get_action_dispatcher,
    get_authorization_controller,
    get_credential_store,
    get_gmail_client,
    get_google_oauth_client,
    get_mind_client,
    get_oauth_state_encoder,
    get_profile_service,
    get_token_cipher_service,
    get_voice_reply_service,
)
from .config import get_app_settings

__all__ = [
    "ApiKeyDependency",
    "get_action_dispatcher",
    "get_app_settings",
    "get_authorization_controller",
    "get_credential_store",
    "get_gmail_client",
    "get_google_oauth_client",
    "get_mind_client",
    "get_oauth_state_encoder",
    "get_profile_service",
    "get_token_cipher_service",
    "get_voice_reply_service",
    "require_api_key",
]
