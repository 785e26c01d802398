"""
Filtered, cursor-paginated bookmark listing and the lookup lists behind it.

Rows are ordered by ``(sort key, id)`` in one direction. A cursor holds the
sort key and id of the last row on a page; the next page starts strictly after
that pair, so rows sharing a sort key are neither skipped nor repeated.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import ColumnElement, and_, exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import contains_eager, selectinload

from core.cursor import decode_cursor, encode_cursor
from models.account import Account
from models.bookmark import Bookmark
from models.tag import Tag, bookmark_tags
from schemas.bookmark import AccountCount, BookmarkFilters, BookmarkSort, TagCount
from services.search_query import escape_ilike, parse_search_query

logger = logging.getLogger(__name__)


@dataclass
class BookmarkPage:
    """One page of bookmarks plus the information needed to fetch the next."""

    items: list[Bookmark] = field(default_factory=list)
    total: int = 0
    has_next_page: bool = False
    has_previous_page: bool = False
    next_cursor: str | None = None


def _sort_column(sort: BookmarkSort) -> Any:
    if sort.field == "title":
        return Bookmark.title
    if sort.field == "user":
        return Account.name
    return Bookmark.bookmarked_at


def _sort_value(bookmark: Bookmark, sort: BookmarkSort) -> datetime | str:
    if sort.field == "title":
        return bookmark.title
    if sort.field == "user":
        return bookmark.account.name
    return bookmark.bookmarked_at


def build_filter_clauses(filters: BookmarkFilters) -> list[ColumnElement[bool]]:
    """
    Translate filters into WHERE clauses. Assumes Account is joined.

    Every search phrase or term must match one of title, comment, description
    or url. Tag filtering matches bookmarks carrying any of the given labels.
    """
    clauses: list[ColumnElement[bool]] = []

    for pattern in parse_search_query(filters.search_query).patterns:
        search_pattern = f"%{escape_ilike(pattern)}%"
        clauses.append(
            or_(
                Bookmark.title.ilike(search_pattern),
                Bookmark.comment.ilike(search_pattern),
                Bookmark.description.ilike(search_pattern),
                Bookmark.url.ilike(search_pattern),
            ),
        )

    if filters.domains:
        clauses.append(Bookmark.domain.in_(filters.domains))
    if filters.users:
        clauses.append(Account.username.in_(filters.users))
    if filters.tags:
        subq = (
            select(bookmark_tags.c.bookmark_id)
            .join(Tag, bookmark_tags.c.tag_id == Tag.id)
            .where(
                bookmark_tags.c.bookmark_id == Bookmark.id,
                Tag.label.in_(filters.tags),
            )
        )
        clauses.append(exists(subq))
    if filters.date_from is not None:
        clauses.append(Bookmark.bookmarked_at >= filters.date_from)
    if filters.date_to is not None:
        clauses.append(Bookmark.bookmarked_at <= filters.date_to)

    return clauses


def build_cursor_clause(cursor: str, sort: BookmarkSort) -> ColumnElement[bool]:
    """
    Predicate selecting rows strictly after the cursor in the sort direction.

    Raises:
        InvalidCursorError: If the cursor cannot be decoded for this sort field.
    """
    decoded = decode_cursor(cursor)
    key_value: datetime | str = (
        decoded.as_datetime() if sort.field == "bookmarked_at" else decoded.as_text()
    )
    cursor_id = decoded.as_uuid()
    column = _sort_column(sort)

    if sort.order == "desc":
        return or_(
            column < key_value,
            and_(column == key_value, Bookmark.id < cursor_id),
        )
    return or_(
        column > key_value,
        and_(column == key_value, Bookmark.id > cursor_id),
    )


async def search_bookmarks(
    db: AsyncSession,
    filters: BookmarkFilters | None = None,
    sort: BookmarkSort | None = None,
    limit: int = 25,
    cursor: str | None = None,
) -> BookmarkPage:
    """
    List bookmarks across all accounts with filters and cursor pagination.

    Args:
        db: Database session.
        filters: Text, domain, tag, user and date filters.
        sort: Sort field and direction. Defaults to newest first.
        limit: Maximum number of items on the page.
        cursor: `next_cursor` from the previous page, or None for the first page.

    Returns:
        BookmarkPage with items (account and tags loaded) and the total match count.

    Raises:
        InvalidCursorError: If the cursor is malformed.
        ValueError: If limit is less than 1.
    """
    if limit < 1:
        raise ValueError("limit must be >= 1")
    filters = filters or BookmarkFilters()
    sort = sort or BookmarkSort()

    clauses = build_filter_clauses(filters)

    count_query = (
        select(func.count(Bookmark.id))
        .select_from(Bookmark)
        .join(Account, Bookmark.account_id == Account.id)
        .where(*clauses)
    )
    total = (await db.execute(count_query)).scalar() or 0

    page_query = (
        select(Bookmark)
        .join(Account, Bookmark.account_id == Account.id)
        .options(
            contains_eager(Bookmark.account),
            selectinload(Bookmark.tag_objects),
        )
        .where(*clauses)
    )
    if cursor:
        page_query = page_query.where(build_cursor_clause(cursor, sort))

    column = _sort_column(sort)
    if sort.order == "desc":
        page_query = page_query.order_by(column.desc(), Bookmark.id.desc())
    else:
        page_query = page_query.order_by(column.asc(), Bookmark.id.asc())

    result = await db.execute(page_query.limit(limit + 1))
    rows = list(result.scalars().all())

    has_next_page = len(rows) > limit
    items = rows[:limit]
    next_cursor = None
    if has_next_page and items:
        last = items[-1]
        next_cursor = encode_cursor(_sort_value(last, sort), last.id)

    logger.debug(
        "Bookmark search returned %d of %d (sort=%s %s, cursor=%s)",
        len(items),
        total,
        sort.field,
        sort.order,
        cursor,
    )
    return BookmarkPage(
        items=items,
        total=total,
        has_next_page=has_next_page,
        has_previous_page=bool(cursor),
        next_cursor=next_cursor,
    )


async def list_domains(db: AsyncSession) -> list[str]:
    """Distinct bookmark domains, alphabetically."""
    result = await db.execute(
        select(Bookmark.domain).distinct().order_by(Bookmark.domain.asc()),
    )
    return [domain for domain in result.scalars() if domain]


async def list_tags(db: AsyncSession) -> list[TagCount]:
    """
    All tags with the number of bookmarks carrying them.

    Returns:
        List of TagCount objects sorted by count desc, then label asc.
    """
    result = await db.execute(
        select(
            Tag.label,
            func.count(bookmark_tags.c.bookmark_id).label("count"),
        )
        .outerjoin(bookmark_tags, Tag.id == bookmark_tags.c.tag_id)
        .group_by(Tag.id, Tag.label)
        .order_by(func.count(bookmark_tags.c.bookmark_id).desc(), Tag.label.asc()),
    )
    return [TagCount(label=row.label, count=row.count) for row in result]


async def list_accounts(db: AsyncSession) -> list[AccountCount]:
    """All accounts with their bookmark counts, by username."""
    result = await db.execute(
        select(
            Account.username,
            Account.name,
            func.count(Bookmark.id).label("count"),
        )
        .outerjoin(Bookmark, Bookmark.account_id == Account.id)
        .group_by(Account.id, Account.username, Account.name)
        .order_by(Account.username.asc()),
    )
    return [
        AccountCount(username=row.username, name=row.name, count=row.count)
        for row in result
    ]
