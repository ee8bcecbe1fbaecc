"""
Domain models for delegated OAuth credentials and flow state.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CredentialRecord(BaseModel):
    """Token set granted to the gateway for one user.

    Frozen so a stored record is replaced as a whole and never mutated in place.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(..., min_length=1)
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"
    scope: frozenset[str] = Field(default_factory=frozenset)
    expiry_time: Optional[datetime] = None

    @field_validator("expiry_time")
    @classmethod
    def _ensure_aware(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @classmethod
    def from_token_response(
        cls, payload: Mapping[str, Any], *, received_at: datetime | None = None
    ) -> "CredentialRecord":
        """Build a record from a raw OAuth token endpoint response."""
        received_at = received_at or _utcnow()
        expires_in = payload.get("expires_in")
        expiry_time = (
            received_at + timedelta(seconds=int(expires_in)) if expires_in else None
        )
        scope_raw = payload.get("scope") or ""
        # Google sends a space-delimited string; some proxies send a list.
        scopes = scope_raw.split() if isinstance(scope_raw, str) else scope_raw
        return cls(
            access_token=payload.get("access_token") or "",
            refresh_token=payload.get("refresh_token") or None,
            token_type=payload.get("token_type") or "Bearer",
            scope=frozenset(scopes),
            expiry_time=expiry_time,
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expiry_time is None:
            return False
        return self.expiry_time <= (now or _utcnow())

    def __repr__(self) -> str:  # keep tokens out of logs and tracebacks
        return (
            f"CredentialRecord(token_type={self.token_type!r}, "
            f"scope={sorted(self.scope)!r}, expiry_time={self.expiry_time!r})"
        )

    __str__ = __repr__


class FlowState(BaseModel):
    """Correlation payload carried through the OAuth redirect."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1)
    issued_at: datetime = Field(default_factory=_utcnow)
    nonce: str = Field(default_factory=lambda: uuid.uuid4().hex)

    @field_validator("issued_at")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


__all__ = ["CredentialRecord", "FlowState"]
