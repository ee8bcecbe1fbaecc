"""
Google OAuth utilities.

These helpers sign the flow state carried through the consent redirect and
talk to Google's authorization and token endpoints.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import json
import logging
from datetime import datetime
from hashlib import sha256
from typing import Any, Dict
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from sonny.core.config import GoogleSettings, OAuthSettings
from sonny.core.errors import ConfigurationError, StateDecodeError, TokenExchangeError
from sonny.models.oauth import CredentialRecord, FlowState

logger = logging.getLogger(__name__)

_SIGNATURE_SIZE = sha256().digest_size
# Defaults on FlowState are for building new states only; a decoded token
# must carry every field.
_REQUIRED_STATE_FIELDS = frozenset(FlowState.model_fields)


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(token: str) -> bytes:
    padded = token + "=" * (-len(token) % 4)
    return base64.b64decode(padded.encode("ascii"), altchars=b"-_", validate=True)


class OAuthStateEncoder:
    """Encode and decode OAuth state values to guard against tampering."""

    def __init__(self, secret_key: str) -> None:
        if not secret_key:
            raise ValueError("State signing secret must be provided.")
        self._secret_key = secret_key.encode("utf-8")

    def encode(self, state: FlowState) -> str:
        serialized = json.dumps(
            state.model_dump(mode="json"), separators=(",", ":"), sort_keys=True
        ).encode("utf-8")
        return _b64encode(self._sign(serialized) + serialized)

    def decode(self, token: str) -> FlowState:
        if not isinstance(token, str) or not token:
            raise StateDecodeError("Empty state token.")
        try:
            decoded = _b64decode(token)
        except (binascii.Error, ValueError) as exc:
            raise StateDecodeError("State token is not valid base64url.") from exc

        if len(decoded) <= _SIGNATURE_SIZE:
            raise StateDecodeError("State token is truncated.")
        signature, serialized = decoded[:_SIGNATURE_SIZE], decoded[_SIGNATURE_SIZE:]
        if not hmac.compare_digest(signature, self._sign(serialized)):
            raise StateDecodeError("Invalid OAuth state signature.")

        try:
            payload = json.loads(serialized)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise StateDecodeError("State payload is not valid JSON.") from exc
        if not isinstance(payload, dict):
            raise StateDecodeError("State payload must be an object.")
        missing = _REQUIRED_STATE_FIELDS.difference(payload)
        if missing:
            raise StateDecodeError(f"State payload is missing {sorted(missing)}.")
        try:
            return FlowState.model_validate(payload)
        except ValidationError as exc:
            raise StateDecodeError("State payload is missing required fields.") from exc

    def _sign(self, serialized: bytes) -> bytes:
        return hmac.new(self._secret_key, serialized, sha256).digest()


class GoogleOAuthClient:
    """Build Google authorization URLs, exchange codes and read the profile."""

    AUTH_BASE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

    def __init__(
        self,
        google_settings: GoogleSettings,
        oauth_settings: OAuthSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._google = google_settings
        self._oauth = oauth_settings
        self._transport = transport

    @property
    def can_authorize(self) -> bool:
        """True when the browser leg has everything it needs."""
        return bool(self._google.client_id and self._google.redirect_uri)

    def build_authorization_url(self, state: str, access_type: str = "offline") -> str:
        """Construct the Google OAuth consent URL."""
        if not self.can_authorize:
            raise ConfigurationError(
                "Missing GOOGLE_CLIENT_ID or GOOGLE_REDIRECT_URI; cannot start linking."
            )
        params = {
            "client_id": self._google.client_id,
            "redirect_uri": str(self._google.redirect_uri),
            "response_type": "code",
            "scope": " ".join(self._oauth.scopes),
            "access_type": access_type,
            "include_granted_scopes": "true",
            "prompt": "consent",
            "state": state,
        }
        return f"{self.AUTH_BASE_URL}?{urlencode(params)}"

    async def exchange_authorization_code(
        self, code: str, *, received_at: datetime | None = None
    ) -> CredentialRecord:
        """Exchange an authorization code for a complete credential record."""
        if not self.can_authorize or not self._google.client_secret:
            raise ConfigurationError(
                "Google client credentials are incomplete; cannot exchange code."
            )
        payload = {
            "code": code,
            "client_id": self._google.client_id,
            "client_secret": self._google.client_secret,
            "redirect_uri": str(self._google.redirect_uri),
            "grant_type": "authorization_code",
        }

        try:
            async with self._http() as client:
                response = await client.post(self.TOKEN_URL, data=payload)
        except httpx.HTTPError as exc:
            raise TokenExchangeError(f"Token endpoint unreachable: {exc!r}") from exc

        if response.status_code != httpx.codes.OK:
            raise TokenExchangeError(
                f"Token endpoint returned {response.status_code}: {response.text}"
            )

        try:
            token_payload = response.json()
        except ValueError as exc:
            raise TokenExchangeError("Token endpoint returned non-JSON body.") from exc
        if not isinstance(token_payload, dict) or not token_payload.get("access_token"):
            raise TokenExchangeError("Incomplete token payload returned from Google.")

        try:
            return CredentialRecord.from_token_response(
                token_payload, received_at=received_at
            )
        except (ValidationError, TypeError, ValueError, OverflowError) as exc:
            raise TokenExchangeError(f"Unusable token payload: {exc}") from exc

    async def fetch_profile(self, access_token: str) -> Dict[str, Any]:
        """Return the identity profile behind an access token."""
        headers = {"Authorization": f"Bearer {access_token}"}
        async with self._http() as client:
            response = await client.get(self.USERINFO_URL, headers=headers)
        response.raise_for_status()
        return response.json()

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._oauth.provider_timeout_seconds, transport=self._transport
        )


__all__ = [
    "GoogleOAuthClient",
    "OAuthStateEncoder",
]
