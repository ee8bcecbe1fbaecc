"""Client wrapper for the mind service (Google Gemini) that writes spoken replies."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import google.generativeai as genai
from google.api_core.exceptions import GoogleAPICallError, NotFound

from sonny.core.config import GeminiSettings

_FALLBACK_MODELS: tuple[str, ...] = (
    "gemini-1.5-flash",
    "gemini-1.5-pro",
)

_VOICE_INSTRUCTION = (
    "You are Sonny, a voice assistant. Answer in one to three short spoken "
    "sentences of plain text. Do not use markdown, lists, code or emoji."
)

_GENERATION_CONFIG = {"temperature": 0.6, "max_output_tokens": 256}

logger = logging.getLogger(__name__)


class GeminiModelError(RuntimeError):
    """Raised when Gemini cannot fulfill a request."""


class GeminiClient:
    """Ask a Gemini model for a short reply suitable for speech."""

    def __init__(self, settings: GeminiSettings) -> None:
        if not settings.api_key:
            raise GeminiModelError("GEMINI_API_KEY is not configured.")
        self._settings = settings
        # The SDK keeps credentials in module state.
        genai.configure(api_key=settings.api_key)

    @property
    def model_candidates(self) -> list[str]:
        """Configured model first, then distinct fallbacks."""
        candidates: list[str] = []
        for name in (self._settings.model_name, *_FALLBACK_MODELS):
            cleaned = (name or "").strip()
            if cleaned and cleaned not in candidates:
                candidates.append(cleaned)
        return candidates

    async def generate_text(self, prompt: str) -> tuple[str, str]:
        """Return ``(reply_text, model_name)`` for an utterance.

        The SDK call blocks, so it runs in a worker thread.
        """
        return await asyncio.to_thread(self._generate_blocking, prompt)

    def _generate_blocking(self, prompt: str) -> tuple[str, str]:
        model_name, response = self._first_available_model(prompt)
        try:
            text = response.text or ""
        except ValueError as exc:
            # Raised by the SDK when the candidate was blocked.
            raise GeminiModelError(f"Gemini returned no usable text: {exc}") from exc
        return text.strip(), model_name

    def _first_available_model(self, prompt: str) -> tuple[str, Any]:
        candidates = self.model_candidates
        missing: NotFound | None = None
        for attempt, model_name in enumerate(candidates, start=1):
            model = genai.GenerativeModel(
                model_name,
                system_instruction=_VOICE_INSTRUCTION,
                generation_config=_GENERATION_CONFIG,
            )
            try:
                return model_name, model.generate_content(prompt)
            except NotFound as exc:  # pragma: no cover - network call
                missing = exc
                logger.warning(
                    "Gemini model '%s' not found (attempt %d/%d)",
                    model_name,
                    attempt,
                    len(candidates),
                )
            except GoogleAPICallError as exc:  # pragma: no cover - network call
                raise GeminiModelError(f"Gemini generate_content failed: {exc.message}") from exc

        raise GeminiModelError(
            f"No Gemini model from {candidates} is available; check GEMINI_MODEL_NAME."
        ) from missing


__all__ = ["GeminiClient", "GeminiModelError"]
