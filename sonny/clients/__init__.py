"""Expose constructed client wrappers."""

from .gemini import GeminiClient, GeminiModelError
from .gmail import GmailClient
from .google_auth import GoogleOAuthClient, OAuthStateEncoder

__all__ = [
    "GeminiClient",
    "GeminiModelError",
    "GmailClient",
    "GoogleOAuthClient",
    "OAuthStateEncoder",
]
