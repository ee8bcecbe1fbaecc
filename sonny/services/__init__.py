"""Service layer exports."""

from .actions import ActionDispatcher
from .authorization import AuthorizationFlowController
from .credential_store import (
    CredentialStore,
    InMemoryCredentialStore,
    SQLiteCredentialStore,
)
from .profile import ProfileService
from .token_cipher import TokenCipherService
from .voice import VoiceReplyService

__all__ = [
    "ActionDispatcher",
    "AuthorizationFlowController",
    "CredentialStore",
    "InMemoryCredentialStore",
    "ProfileService",
    "SQLiteCredentialStore",
    "TokenCipherService",
    "VoiceReplyService",
]
