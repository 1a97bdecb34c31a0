"""
Authentication Module

Bearer-token authentication with shared secrets:
- API_SECRET guards the search endpoints
- CRON_SECRET guards the scheduled prefetch endpoint
"""

import logging
import secrets
from typing import Optional

from fastapi import HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import get_settings

logger = logging.getLogger(__name__)

# auto_error=False so a missing header is a 401 (not FastAPI's default 403)
security = HTTPBearer(auto_error=False)


def _token_matches(credentials: Optional[HTTPAuthorizationCredentials], expected: str) -> bool:
    if credentials is None or not credentials.credentials:
        return False
    return secrets.compare_digest(credentials.credentials.encode(), expected.encode())


async def verify_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
) -> Optional[HTTPAuthorizationCredentials]:
    """
    Verify the API bearer token.

    Raises:
        HTTPException: 401 if the token is missing or invalid,
            500 if auth is required but no secret is configured
    """
    settings = get_settings()
    if not settings.auth_required:
        # Auth not required in development without secret
        return credentials

    if not settings.api_secret:
        raise HTTPException(status_code=500, detail="Server authentication not configured")

    if not _token_matches(credentials, settings.api_secret):
        raise HTTPException(status_code=401, detail="Invalid authentication token")

    return credentials


async def verify_cron_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
) -> None:
    """
    Verify the cron bearer token.

    Raises:
        HTTPException: 401 unless the header carries CRON_SECRET
    """
    settings = get_settings()
    if not settings.cron_secret:
        logger.error("Cron request rejected: CRON_SECRET is not configured")
        raise HTTPException(status_code=401, detail="Unauthorized")

    if not _token_matches(credentials, settings.cron_secret):
        raise HTTPException(status_code=401, detail="Unauthorized")
