"""Administrative access FastAPI dependency."""

from __future__ import annotations

import secrets
from typing import Annotated

from fastapi import Header, HTTPException, status

from infrastructure.settings import get_auth_settings


def require_admin_token(
    x_admin_token: Annotated[str | None, Header()] = None,
) -> None:
    """Require the X-Admin-Token header to match the configured admin token.

    Raises:
        HTTPException 401: If the header is missing or wrong
        HTTPException 503: If no admin token is configured
    """
    expected = get_auth_settings().admin_token.get_secret_value()
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Administrative access is not configured",
        )
    if x_admin_token is None or not secrets.compare_digest(
        x_admin_token.encode(), expected.encode()
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing X-Admin-Token header",
        )
