"""Bookmark listing endpoints."""
from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session
from schemas.bookmark import (
    BookmarkFilters,
    BookmarkListItem,
    BookmarkListResponse,
    BookmarkSort,
    DomainListResponse,
    PaginationInfo,
)
from services import search_service

router = APIRouter(prefix="/bookmarks", tags=["bookmarks"])


@router.get("/", response_model=BookmarkListResponse)
async def list_bookmarks(
    q: str | None = Query(default=None, description="Search query; use double quotes for phrases"),  # noqa: E501
    domains: list[str] = Query(default=[], description="Filter by domain"),
    tags: list[str] = Query(default=[], description="Filter by tag label (matches any)"),
    users: list[str] = Query(default=[], description="Filter by account username"),
    date_from: datetime | None = Query(default=None, alias="from", description="Bookmarked at or after"),  # noqa: E501
    date_to: datetime | None = Query(default=None, alias="to", description="Bookmarked at or before"),  # noqa: E501
    sort_by: Literal["bookmarked_at", "title", "user"] = Query(default="bookmarked_at", description="Sort field"),  # noqa: E501
    order: Literal["asc", "desc"] = Query(default="desc", description="Sort order"),
    limit: int = Query(default=25, ge=1, le=100, description="Page size"),
    cursor: str | None = Query(default=None, description="next_cursor from the previous page"),  # noqa: E501
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkListResponse:
    """
    List bookmarks from every account with search, filtering, and cursor pagination.

    - **q**: Every quoted phrase and bare term must match title, comment, description, or url
    - **sort_by**: bookmarked_at (default), title, or user (account name)
    - **cursor**: Opaque value from `pagination.next_cursor`; an invalid cursor returns 400
    """
    try:
        filters = BookmarkFilters(
            search_query=q or "",
            domains=domains,
            tags=tags,
            users=users,
            date_from=date_from,
            date_to=date_to,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False, include_input=False))  # noqa: E501

    page = await search_service.search_bookmarks(
        db,
        filters=filters,
        sort=BookmarkSort(field=sort_by, order=order),
        limit=limit,
        cursor=cursor,
    )
    return BookmarkListResponse(
        items=[BookmarkListItem.model_validate(b) for b in page.items],
        total=page.total,
        pagination=PaginationInfo(
            has_next_page=page.has_next_page,
            has_previous_page=page.has_previous_page,
            next_cursor=page.next_cursor,
        ),
    )


@router.get("/domains", response_model=DomainListResponse)
async def list_domains(
    db: AsyncSession = Depends(get_async_session),
) -> DomainListResponse:
    """Distinct domains across all bookmarks, for filter forms."""
    return DomainListResponse(domains=await search_service.list_domains(db))
