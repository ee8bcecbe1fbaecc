"""Gmail REST client used to send mail with a user's delegated token."""

from __future__ import annotations

import base64
from email.errors import HeaderParseError
from email.message import EmailMessage
from typing import Any, Dict

import httpx


def build_raw_message(*, to: str, subject: str, body: str) -> str:
    """Create a base64url-encoded RFC 2822 message for Gmail's ``raw`` field.

    Raises ``ValueError`` when a header value would smuggle extra headers
    through a line break or the recipient list cannot be parsed.
    """
    for name, value in (("To", to), ("Subject", subject)):
        if "\r" in value or "\n" in value:
            raise ValueError(f"{name} header may not contain line breaks.")

    message = EmailMessage()
    try:
        message["To"] = to
        message["Subject"] = subject
    except (HeaderParseError, IndexError) as exc:
        # The header registry raises IndexError on some truncated addresses.
        raise ValueError(f"Unparseable recipient address: {to!r}") from exc
    message.set_content(body or "")
    return base64.urlsafe_b64encode(message.as_bytes()).decode("ascii")


class GmailClient:
    """Thin wrapper over ``users.messages.send``."""

    SEND_URL = "https://gmail.googleapis.com/gmail/v1/users/me/messages/send"

    def __init__(
        self,
        *,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout_seconds
        self._transport = transport

    async def send_message(self, *, access_token: str, raw_message: str) -> httpx.Response:
        """POST an encoded message and return the provider response unchanged.

        Transport failures propagate as ``httpx.HTTPError``; status handling is
        left to the caller so provider error bodies can be surfaced.
        """
        headers = {"Authorization": f"Bearer {access_token}"}
        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport
        ) as client:
            return await client.post(
                self.SEND_URL, json={"raw": raw_message}, headers=headers
            )


def provider_error_detail(response: httpx.Response) -> Dict[str, Any]:
    """Extract a diagnostic payload from a failed Google API response."""
    detail: Dict[str, Any] = {"status": response.status_code}
    try:
        body = response.json()
    except ValueError:
        detail["body"] = response.text[:500]
        return detail
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        detail["message"] = error.get("message")
        detail["reason"] = error.get("status")
    elif error:
        detail["message"] = error
    else:
        detail["body"] = body
    return detail


__all__ = ["GmailClient", "build_raw_message", "provider_error_detail"]
