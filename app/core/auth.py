"""
Bearer-token authentication for admin and cron endpoints.

Sync triggers and the sync dashboard accept either the cron secret (used by
the external cron caller) or the admin token.
"""
import secrets
from typing import Optional

from fastapi import HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.requests import Request

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _accepted_tokens() -> list[str]:
    return [token for token in (settings.CRON_SECRET, settings.ADMIN_TOKEN) if token]


def require_sync_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
) -> str:
    """
    Validate the bearer token of an admin/cron request.

    Returns:
        The validated token

    Raises:
        HTTPException: 401 when missing or invalid
    """
    tokens = _accepted_tokens()

    # No tokens configured: open in development, closed in production
    if not tokens:
        if settings.is_production():
            logger.warning("CRON_SECRET/ADMIN_TOKEN not configured in production - rejecting request")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Unauthorized",
            )
        logger.debug("No sync token configured - allowing request in development mode")
        return "_dev_skip_"

    supplied = credentials.credentials if credentials else None
    if not supplied or not any(secrets.compare_digest(supplied, token) for token in tokens):
        logger.warning(
            f"Unauthorized sync request from {request.client.host if request.client else 'unknown'}",
            extra={"has_auth_header": credentials is not None},
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return supplied
