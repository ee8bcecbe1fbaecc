"""
Error taxonomy shared by the gateway services and routes.

Each error carries the HTTP status and machine-readable code it maps to, so
routes and the application-level exception handler render them uniformly.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Any


class GatewayError(Exception):
    """Base class for failures that map onto a client-visible response."""

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR
    error_code: str = "internal_error"
    public_message: str = "Something went wrong."

    def __init__(
        self,
        message: str | None = None,
        *,
        detail: Any = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(message or self.public_message)
        self.message = message or self.public_message
        self.detail = detail
        self.hint = hint

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"ok": False, "error": self.error_code}
        if self.detail is not None:
            payload["detail"] = self.detail
        if self.hint:
            payload["hint"] = self.hint
        return payload


class UnauthorizedError(GatewayError):
    status_code = HTTPStatus.UNAUTHORIZED
    error_code = "unauthorized"
    public_message = "Missing or invalid bearer token."


class ConfigurationError(GatewayError):
    """Raised when provider credentials required by an endpoint are absent."""

    error_code = "configuration_error"
    public_message = "Account linking is not configured on this server."


class BadRequestError(GatewayError):
    status_code = HTTPStatus.BAD_REQUEST
    error_code = "bad_request"
    public_message = "Malformed request."


class MissingCodeError(GatewayError):
    status_code = HTTPStatus.BAD_REQUEST
    error_code = "missing_code"
    public_message = "Missing authorization code."


class InvalidStateError(GatewayError):
    status_code = HTTPStatus.BAD_REQUEST
    error_code = "invalid_state"
    public_message = "Invalid or expired state parameter."


class StateDecodeError(InvalidStateError):
    """Raised by the state codec when a token cannot be trusted."""


class TokenExchangeError(GatewayError):
    """Raised when the token endpoint rejects an authorization code.

    The message holds provider detail for the server log; browsers only ever
    see ``public_message``.
    """

    error_code = "token_exchange_failed"
    public_message = "Could not complete account linking. Please try again."

    def to_payload(self) -> dict[str, Any]:
        return {"ok": False, "error": self.error_code}


class NotLinkedError(GatewayError):
    status_code = HTTPStatus.UNAUTHORIZED
    error_code = "not_linked"
    public_message = "No linked account for this user."


class ProviderCallError(GatewayError):
    """Raised when a provider resource call (profile, send) fails."""

    error_code = "provider_call_failed"
    public_message = "The provider request failed."


__all__ = [
    "BadRequestError",
    "ConfigurationError",
    "GatewayError",
    "InvalidStateError",
    "MissingCodeError",
    "NotLinkedError",
    "ProviderCallError",
    "StateDecodeError",
    "TokenExchangeError",
    "UnauthorizedError",
]
