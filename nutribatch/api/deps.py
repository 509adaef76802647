"""
API dependencies

Admin routes are protected by a static bearer token (ADMIN_API_TOKEN).
"""
import logging
import secrets
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from nutribatch.core.config import settings
from nutribatch.engine.batch_engine import BatchEngine
from nutribatch.jobs.registry import get_batch_engine

logger = logging.getLogger(__name__)

# Optional bearer - missing header is answered with 401 below, not 403
security = HTTPBearer(auto_error=False)


async def get_current_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """Require the admin bearer token. Returns an actor label for audit logs."""
    expected = settings.ADMIN_API_TOKEN
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin API is not configured",
        )

    if not credentials or not secrets.compare_digest(credentials.credentials.encode(), expected.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return "admin"


def get_engine() -> BatchEngine:
    return get_batch_engine()
