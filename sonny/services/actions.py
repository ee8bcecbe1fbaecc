"""
Dispatch typed user actions to their handlers.

Only ``email`` needs a delegated credential and a provider call; every other
type is acknowledged as queued without leaving the process. Provider failures
come back as structured results rather than exceptions.
"""

from __future__ import annotations

import logging
import uuid

import httpx

from sonny.clients.gmail import GmailClient, build_raw_message, provider_error_detail
from sonny.core.errors import NotLinkedError
from sonny.schemas.actions import EMAIL_ACTION, ActionRequest, ActionResult
from sonny.services.credential_store import CredentialStore, require_active_credential

logger = logging.getLogger(__name__)


def _generated_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


class ActionDispatcher:
    """Route an ``ActionRequest`` to the provider operation it requires."""

    def __init__(
        self,
        *,
        store: CredentialStore,
        gmail_client: GmailClient,
        start_path: str,
    ) -> None:
        self._store = store
        self._gmail = gmail_client
        self._start_path = start_path

    async def dispatch(self, user_id: str, request: ActionRequest) -> ActionResult:
        action_type = request.normalized_type
        if action_type == EMAIL_ACTION:
            return await self._send_email(user_id, request)

        action_id = _generated_id("act")
        logger.info("Queued %s action id=%s user=%s", action_type, action_id, user_id)
        return ActionResult(ok=True, id=action_id, type=action_type, status="queued")

    async def _send_email(self, user_id: str, request: ActionRequest) -> ActionResult:
        try:
            record = require_active_credential(
                self._store, user_id, start_path=self._start_path
            )
        except NotLinkedError as exc:
            return ActionResult(
                ok=False, type=EMAIL_ACTION, error=exc.error_code, detail=exc.message, hint=exc.hint
            )

        if not request.to:
            return self._invalid("Email actions require a 'to' address.")
        try:
            raw = build_raw_message(
                to=request.to, subject=request.subject or "", body=request.body or ""
            )
        except ValueError as exc:
            return self._invalid(str(exc))

        try:
            response = await self._gmail.send_message(
                access_token=record.access_token, raw_message=raw
            )
        except httpx.HTTPError as exc:
            logger.warning("Gmail send transport failure for user=%s: %r", user_id, exc)
            return self._send_failed({"message": f"transport error: {type(exc).__name__}"})

        if not response.is_success:
            detail = provider_error_detail(response)
            logger.warning("Gmail send rejected for user=%s: %s", user_id, detail)
            return self._send_failed(detail)

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        provider_id = payload.get("id") if isinstance(payload, dict) else None
        if provider_id:
            logger.info("Sent email for user=%s provider_id=%s", user_id, provider_id)
            return ActionResult(
                ok=True, id=provider_id, type=EMAIL_ACTION, status="sent", id_source="provider"
            )

        local_id = _generated_id("local")
        logger.warning(
            "Gmail send succeeded without a message id for user=%s; using %s",
            user_id,
            local_id,
        )
        return ActionResult(
            ok=True, id=local_id, type=EMAIL_ACTION, status="sent", id_source="local"
        )

    @staticmethod
    def _invalid(message: str) -> ActionResult:
        return ActionResult(ok=False, type=EMAIL_ACTION, error="invalid_action", detail=message)

    @staticmethod
    def _send_failed(detail: dict) -> ActionResult:
        return ActionResult(
            ok=False,
            type=EMAIL_ACTION,
            status="failed",
            error="provider_send_failed",
            detail=detail,
        )


__all__ = ["ActionDispatcher"]
