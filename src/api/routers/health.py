"""Liveness and mirror freshness."""
import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session
from models.account import Account
from models.bookmark import Bookmark

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Database reachability plus how far the mirror has caught up."""

    status: str
    database: str
    accounts: int | None = None
    latest_bookmark_at: datetime | None = None


@router.get("/health", response_model=HealthResponse)
async def health_check(
    db: AsyncSession = Depends(get_async_session),
) -> HealthResponse:
    """
    Report whether the store is reachable and the newest mirrored bookmark.

    A stale `latest_bookmark_at` is the usual sign that scheduled syncs have
    stopped running.
    """
    try:
        row = (
            await db.execute(
                select(
                    select(func.count(Account.id)).scalar_subquery(),
                    select(func.max(Bookmark.bookmarked_at)).scalar_subquery(),
                ),
            )
        ).one()
    except SQLAlchemyError:
        logger.exception("Database health check failed")
        return HealthResponse(status="degraded", database="unhealthy")

    return HealthResponse(
        status="healthy",
        database="healthy",
        accounts=row[0],
        latest_bookmark_at=row[1],
    )
