"""
Pydantic models for action requests and their normalized results.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

EMAIL_ACTION = "email"
NOTE_ACTION = "note"


class ActionRequest(BaseModel):
    """Payload for ``POST /actions/create``.

    ``type`` is open-ended; only ``email`` reaches a provider.
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field("", alias="userId", description="Caller-supplied user key.")
    type: str = Field(NOTE_ACTION, description="Action type, e.g. 'note' or 'email'.")
    topic: Optional[str] = None
    details: Optional[str] = None
    to: Optional[str] = Field(None, description="Recipient address for email actions.")
    subject: Optional[str] = None
    body: Optional[str] = None

    @property
    def normalized_type(self) -> str:
        return (self.type or NOTE_ACTION).strip().lower()


class ActionResult(BaseModel):
    """Normalized outcome of dispatching an action."""

    ok: bool
    id: Optional[str] = None
    type: Optional[str] = None
    status: Optional[Literal["queued", "sent", "failed"]] = None
    id_source: Optional[Literal["provider", "local"]] = Field(
        None, description="Whether ``id`` came from the provider or was generated here."
    )
    error: Optional[str] = None
    detail: Any = None
    hint: Optional[str] = None

    def http_status(self) -> int:
        if self.ok:
            return 200
        return {
            "not_linked": 401,
            "invalid_action": 400,
        }.get(self.error or "", 500)


__all__ = ["ActionRequest", "ActionResult", "EMAIL_ACTION", "NOTE_ACTION"]
