"""
FastAPI routes for the voice gateway.
"""

from __future__ import annotations

import html
import json
import logging
import time
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse
from pydantic import ValidationError

from sonny.core.config import OAUTH_CALLBACK_PATH, OAUTH_START_PATH
from sonny.core.errors import GatewayError, TokenExchangeError
from sonny.dependencies import (
    ApiKeyDependency,
    get_action_dispatcher,
    get_app_settings,
    get_authorization_controller,
    get_profile_service,
    get_voice_reply_service,
)
from sonny.schemas import (
    ActionRequest,
    VoiceIngestRequest,
    VoiceIngestResponse,
    VoiceSession,
)
from sonny.services.voice import FALLBACK_SSML

router = APIRouter()
logger = logging.getLogger(__name__)

_LINKED_PAGE = """<!doctype html>
<html>
  <head><meta charset="utf-8"><title>Account linked</title></head>
  <body>
    <h1>Google account linked</h1>
    <p>Sonny can now send email for <strong>{user_id}</strong>. You can close this window.</p>
  </body>
</html>
"""


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck(settings: Annotated[Any, Depends(get_app_settings)]) -> dict:
    """Liveness probe; no authentication."""
    return {"ok": True, "service": settings.service_name, "ts": int(time.time() * 1000)}


async def _read_voice_payload(request: Request) -> VoiceIngestRequest | None:
    """Parse the ingest body leniently; ``None`` means it is unusable."""
    raw = await request.body()
    if not raw.strip():
        return VoiceIngestRequest()
    try:
        data = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    try:
        return VoiceIngestRequest.model_validate(data)
    except ValidationError:
        return None


def _voice_response(response: VoiceIngestResponse) -> JSONResponse:
    exclude = {"error"} if response.error is None else None
    return JSONResponse(content=response.model_dump(by_alias=True, exclude=exclude))


@router.post("/voice/ingest", dependencies=[ApiKeyDependency])
async def voice_ingest(
    request: Request,
    voice_service: Annotated[Any, Depends(get_voice_reply_service)],
) -> JSONResponse:
    """Turn a transcribed utterance into an SSML reply.

    Always answers with something speakable, even for unusable bodies or when
    reply generation fails.
    """
    payload = await _read_voice_payload(request)
    if payload is None:
        logger.warning("Unusable voice ingest body; answering with fallback")
        return _voice_response(
            VoiceIngestResponse(
                ok=False, ssml=FALLBACK_SSML, session=VoiceSession(), error="invalid_request"
            )
        )

    session = VoiceSession(session_id=payload.session_id, user_id=payload.user_id)
    try:
        reply = await voice_service.reply(payload.text)
        response = VoiceIngestResponse(ssml=reply.ssml, session=session, model=reply.model)
    except Exception:
        logger.exception("Voice ingest failed for session=%s", payload.session_id)
        response = VoiceIngestResponse(
            ok=False, ssml=FALLBACK_SSML, session=session, error="internal_error"
        )
    return _voice_response(response)


@router.get(OAUTH_START_PATH)
async def start_provider_oauth(
    controller: Annotated[Any, Depends(get_authorization_controller)],
    user_id: str = Query("", alias="userId", description="User linking their account."),
) -> Any:
    """Redirect the browser to the Google consent screen."""
    try:
        authorization_url = controller.start(user_id)
    except GatewayError as exc:
        logger.error("Cannot start account link: %s", exc.message)
        return PlainTextResponse(exc.message, status_code=exc.status_code)
    return RedirectResponse(url=authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT)


@router.get(OAUTH_CALLBACK_PATH)
async def handle_provider_oauth_callback(
    controller: Annotated[Any, Depends(get_authorization_controller)],
    code: str = Query("", description="Authorization code returned by Google."),
    state: str = Query("", description="Signed state token issued by the start leg."),
    error: str | None = Query(None, description="Error reported by Google, if any."),
) -> Any:
    """Finish linking: validate state, exchange the code and store the credential."""
    try:
        user_id, _ = await controller.complete(code=code, state=state, error=error)
    except TokenExchangeError as exc:
        logger.error("Token exchange failed: %s", exc.message)
        return PlainTextResponse(exc.public_message, status_code=exc.status_code)
    except GatewayError as exc:
        return PlainTextResponse(exc.message, status_code=exc.status_code)
    return HTMLResponse(_LINKED_PAGE.format(user_id=html.escape(user_id)))


@router.get("/provider/profile", dependencies=[ApiKeyDependency])
async def provider_profile(
    profile_service: Annotated[Any, Depends(get_profile_service)],
    user_id: str = Query("", alias="userId"),
) -> dict:
    """Return the linked account profile. Failures are rendered by the app handler."""
    profile = await profile_service.fetch_profile(user_id)
    return {"ok": True, "profile": profile}


@router.post("/actions/create", dependencies=[ApiKeyDependency])
async def create_action(
    dispatcher: Annotated[Any, Depends(get_action_dispatcher)],
    payload: Annotated[ActionRequest | None, Body()] = None,
) -> JSONResponse:
    """Dispatch an action; provider failures come back as structured results."""
    payload = payload or ActionRequest()
    result = await dispatcher.dispatch(payload.user_id, payload)
    return JSONResponse(
        content=result.model_dump(mode="json", exclude_none=True),
        status_code=result.http_status(),
    )


__all__ = ["router"]
