"""
Two-leg OAuth2 authorization-code flow for linking a user's Google account.

The flow keeps no server-side pending state: everything needed to finish the
callback travels inside the signed state token. The only write happens after a
successful code exchange.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sonny.clients.google_auth import GoogleOAuthClient, OAuthStateEncoder
from sonny.core.config import OAuthSettings
from sonny.core.errors import (
    BadRequestError,
    ConfigurationError,
    InvalidStateError,
    MissingCodeError,
)
from sonny.core.logging import mask_secret
from sonny.models.oauth import CredentialRecord, FlowState
from sonny.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)

_CLOCK_SKEW = timedelta(seconds=60)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuthorizationFlowController:
    """Start and complete the account-linking handshake."""

    def __init__(
        self,
        *,
        oauth_client: GoogleOAuthClient,
        state_encoder: Optional[OAuthStateEncoder],
        store: CredentialStore,
        oauth_settings: OAuthSettings,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._oauth_client = oauth_client
        self._encoder = state_encoder
        self._store = store
        self._settings = oauth_settings
        self._clock = clock

    def start(self, user_id: str) -> str:
        """Return the consent URL the browser should be redirected to."""
        encoder = self._require_encoder()
        if not self._oauth_client.can_authorize:
            raise ConfigurationError(
                "Missing GOOGLE_CLIENT_ID or GOOGLE_REDIRECT_URI; cannot start linking."
            )
        if not user_id:
            raise BadRequestError("Missing userId query parameter.")
        state = FlowState(user_id=user_id, issued_at=self._clock())
        url = self._oauth_client.build_authorization_url(state=encoder.encode(state))
        logger.info("Starting account link for user=%s", user_id)
        return url

    async def complete(
        self, *, code: str | None, state: str | None, error: str | None = None
    ) -> tuple[str, CredentialRecord]:
        """Validate the callback, exchange the code and store the credential.

        Returns the linked ``(user_id, record)``. Any failure leaves the store
        untouched.
        """
        if error:
            raise MissingCodeError(f"Authorization was not granted ({error}).")
        if not code:
            raise MissingCodeError()
        encoder = self._require_encoder()

        try:
            flow_state = encoder.decode(state or "")
        except InvalidStateError:
            logger.warning("Rejected OAuth callback with bad state=%s", mask_secret(state))
            raise
        self._check_freshness(flow_state)

        now = self._clock()
        record = await self._oauth_client.exchange_authorization_code(
            code, received_at=now
        )
        # Single commit point for a credential.
        self._store.put(flow_state.user_id, record)
        logger.info(
            "Linked account for user=%s scopes=%s", flow_state.user_id, sorted(record.scope)
        )
        return flow_state.user_id, record

    def _check_freshness(self, flow_state: FlowState) -> None:
        now = self._clock()
        age = now - flow_state.issued_at
        if age > timedelta(seconds=self._settings.state_ttl_seconds):
            raise InvalidStateError("OAuth state token has expired.")
        if age < -_CLOCK_SKEW:
            raise InvalidStateError("OAuth state token was issued in the future.")

    def _require_encoder(self) -> OAuthStateEncoder:
        if self._encoder is None:
            raise ConfigurationError(
                "No STATE_SIGNING_SECRET or GOOGLE_CLIENT_SECRET configured."
            )
        return self._encoder


__all__ = ["AuthorizationFlowController"]
