"""
Static bearer-token gate for privileged endpoints.
"""

from __future__ import annotations

import hmac
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from sonny.core.config import AppSettings
from sonny.core.errors import UnauthorizedError
from sonny.dependencies.config import get_app_settings

_bearer_scheme = HTTPBearer(auto_error=False)


async def require_api_key(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    settings: AppSettings = Depends(get_app_settings),
) -> None:
    """Reject the request unless it carries the configured bearer key.

    With no ``API_KEY`` configured every privileged request is rejected.
    """
    expected = settings.security.api_key
    if not expected or credentials is None:
        raise UnauthorizedError()
    if not hmac.compare_digest(
        credentials.credentials.encode("utf-8"), expected.encode("utf-8")
    ):
        raise UnauthorizedError()


ApiKeyDependency = Depends(require_api_key)

__all__ = ["ApiKeyDependency", "require_api_key"]
