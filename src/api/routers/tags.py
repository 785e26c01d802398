"""Tag lookup endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session
from schemas.bookmark import TagListResponse
from services.search_service import list_tags

router = APIRouter(prefix="/tags", tags=["tags"])


@router.get("/", response_model=TagListResponse)
async def list_all_tags(
    db: AsyncSession = Depends(get_async_session),
) -> TagListResponse:
    """
    Get all tags with their bookmark counts.

    Results are sorted by count DESC, then label ASC.
    """
    return TagListResponse(tags=await list_tags(db))
