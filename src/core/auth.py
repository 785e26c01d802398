"""Bearer-secret authentication for the scheduled sync trigger."""
import logging
import secrets

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.config import Settings, get_settings

logger = logging.getLogger(__name__)

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def verify_cron_secret(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Dependency that requires `Authorization: Bearer <CRON_SECRET>`.

    An unset secret rejects every request rather than leaving the trigger open.
    """
    if not settings.cron_secret:
        logger.warning("Cron trigger called but CRON_SECRET is not configured")
        raise _unauthorized("Cron trigger is not configured")

    if credentials is None:
        logger.warning("Cron trigger called without credentials")
        raise _unauthorized("Not authenticated")

    if not secrets.compare_digest(
        credentials.credentials.encode("utf-8"),
        settings.cron_secret.encode("utf-8"),
    ):
        logger.warning("Cron trigger called with an invalid secret")
        raise _unauthorized("Invalid token")
