"""Scheduled sync trigger."""
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import (
    get_async_session,
    get_settings,
    get_source_client,
    verify_cron_secret,
)
from core.config import Settings
from services.source_client import PageFetcher
from services.sync_service import SyncSummary, run_sync

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/cron",
    tags=["cron"],
    dependencies=[Depends(verify_cron_secret)],
)


@router.api_route("/sync-bookmarks", methods=["GET", "POST"], response_model=SyncSummary)
async def sync_bookmarks(
    db: AsyncSession = Depends(get_async_session),
    client: PageFetcher = Depends(get_source_client),
    settings: Settings = Depends(get_settings),
) -> SyncSummary | JSONResponse:
    """
    Run an incremental sync for every known account.

    Failures for one account are reported in its `results` entry and do not
    stop the others. Requires `Authorization: Bearer <CRON_SECRET>`.
    """
    try:
        return await run_sync(db=db, client=client, settings=settings)
    except Exception as e:
        logger.exception("Bookmark sync failed")
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to sync bookmarks", "message": str(e)},
        )
