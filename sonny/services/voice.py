"""Compose SSML replies for the voice front-end."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

from sonny.clients.gemini import GeminiClient, GeminiModelError

logger = logging.getLogger(__name__)

GREETING_SSML = "<speak>Hello, I am Sonny. How can I help?</speak>"
FALLBACK_SSML = (
    "<speak>Sorry, I ran into a problem just now. Please try again in a moment.</speak>"
)

_STRIP_CHARS = re.compile(r"[<>\"']")
_MAX_PROMPT_CHARS = 2000


def escape_for_ssml(text: str) -> str:
    """Make user or model text safe to embed in SSML markup."""
    return _STRIP_CHARS.sub("", text.replace("&", "and"))


@dataclass(frozen=True)
class VoiceReply:
    ssml: str
    model: Optional[str] = None


class VoiceReplyService:
    """Turn an utterance into a spoken reply, using the mind service when available."""

    def __init__(self, mind_client: GeminiClient | None) -> None:
        self._mind = mind_client

    async def reply(self, text: str) -> VoiceReply:
        utterance = (text or "").strip()
        if not utterance:
            return VoiceReply(ssml=GREETING_SSML)
        if self._mind is None:
            return VoiceReply(ssml=self._echo(utterance))

        try:
            reply_text, model_name = await self._mind.generate_text(
                self._build_prompt(utterance)
            )
        except GeminiModelError as exc:
            logger.warning("Mind service unavailable, echoing instead: %s", exc)
            return VoiceReply(ssml=self._echo(utterance))

        spoken = escape_for_ssml(reply_text.strip())
        if not spoken:
            return VoiceReply(ssml=self._echo(utterance))
        return VoiceReply(ssml=f"<speak><p>{spoken}</p></speak>", model=model_name)

    @staticmethod
    def _echo(utterance: str) -> str:
        said = escape_for_ssml(utterance.lower())
        return (
            "<speak>"
            f'<p>You said: <emphasis level="moderate">{said}</emphasis>.</p>'
            "<p>I'm here. What would you like to do next?</p>"
            "</speak>"
        )

    @staticmethod
    def _build_prompt(utterance: str) -> str:
        return f"User said: {utterance[:_MAX_PROMPT_CHARS]}"


__all__ = [
    "FALLBACK_SSML",
    "GREETING_SSML",
    "VoiceReply",
    "VoiceReplyService",
    "escape_for_ssml",
]
