"""Bearer-token check applied to every CoinLens route."""

from __future__ import annotations

import logging
import secrets
from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

if TYPE_CHECKING:
    from coinlens.config import Settings

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


def _token_matches(credentials: HTTPAuthorizationCredentials | None, expected: str) -> bool:
    if credentials is None:
        return False
    return secrets.compare_digest(credentials.credentials.encode(), expected.encode())


async def verify_api_key(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
) -> None:
    """Reject the request unless it carries the configured API key.

    With COINLENS_API_KEY unset every request passes; otherwise the request
    needs 'Authorization: Bearer <key>'.
    """
    settings: Settings = request.app.state.settings
    if settings.api_key is None or _token_matches(credentials, settings.api_key):
        return

    client_host = request.client.host if request.client else "unknown"
    logger.warning("Rejected request to %s from %s: bad API key", request.url.path, client_host)
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or missing API key",
        headers={"WWW-Authenticate": "Bearer"},
    )
