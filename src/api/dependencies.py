"""FastAPI dependencies for injection."""
from collections.abc import AsyncGenerator

from fastapi import Depends

from core.auth import verify_cron_secret
from core.config import Settings, get_settings
from db.session import get_async_session
from services.source_client import PageFetcher, create_source_client


async def get_source_client(
    settings: Settings = Depends(get_settings),
) -> AsyncGenerator[PageFetcher]:
    """Yield a source client whose HTTP connection lives for the request."""
    async with create_source_client(settings) as client:
        yield client


__all__ = [
    "get_async_session",
    "get_settings",
    "get_source_client",
    "verify_cron_secret",
]
