"""Public schema exports."""

from .actions import ActionRequest, ActionResult
from .voice import VoiceIngestRequest, VoiceIngestResponse, VoiceSession

__all__ = [
    "ActionRequest",
    "ActionResult",
    "VoiceIngestRequest",
    "VoiceIngestResponse",
    "VoiceSession",
]
