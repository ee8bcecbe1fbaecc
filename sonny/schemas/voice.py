"""Schemas for the voice ingest endpoint."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class VoiceIngestRequest(BaseModel):
    """Transcribed utterance forwarded by the voice front-end.

    Front-ends are loose about types, so every field is stringified rather than
    rejected.
    """

    model_config = ConfigDict(populate_by_name=True)

    text: str = ""
    session_id: str = Field("", alias="sessionId")
    user_id: str = Field("", alias="userId")

    @field_validator("text", "session_id", "user_id", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> str:
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)


class VoiceSession(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field("", serialization_alias="sessionId")
    user_id: str = Field("", serialization_alias="userId")


class VoiceIngestResponse(BaseModel):
    ok: bool = True
    ssml: str
    session: VoiceSession
    model: Optional[str] = None
    error: Optional[str] = None


__all__ = ["VoiceIngestRequest", "VoiceIngestResponse", "VoiceSession"]
