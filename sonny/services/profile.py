"""Read the identity profile of a user's linked Google account."""

from __future__ import annotations

import logging
from typing import Any, Dict

import httpx

from sonny.clients.gmail import provider_error_detail
from sonny.clients.google_auth import GoogleOAuthClient
from sonny.core.errors import ProviderCallError
from sonny.services.credential_store import CredentialStore, require_active_credential

logger = logging.getLogger(__name__)


class ProfileService:
    def __init__(
        self, *, store: CredentialStore, oauth_client: GoogleOAuthClient, start_path: str
    ) -> None:
        self._store = store
        self._oauth_client = oauth_client
        self._start_path = start_path

    async def fetch_profile(self, user_id: str) -> Dict[str, Any]:
        """Return the provider profile or raise ``NotLinkedError``/``ProviderCallError``."""
        record = require_active_credential(self._store, user_id, start_path=self._start_path)
        try:
            return await self._oauth_client.fetch_profile(record.access_token)
        except httpx.HTTPStatusError as exc:
            detail = provider_error_detail(exc.response)
            logger.warning("Profile lookup rejected for user=%s: %s", user_id, detail)
            raise ProviderCallError(detail=detail) from exc
        except httpx.HTTPError as exc:
            logger.warning("Profile lookup failed for user=%s: %r", user_id, exc)
            raise ProviderCallError(
                detail={"message": f"transport error: {type(exc).__name__}"}
            ) from exc
        except ValueError as exc:
            raise ProviderCallError(detail={"message": "profile response was not JSON"}) from exc


__all__ = ["ProfileService"]
