"""
Persistence for imported bookmarks.

The unique (account_id, url) constraint is the de-duplication authority:
inserts use ON CONFLICT DO NOTHING, so a row created by a concurrent or earlier
import is reported as skipped instead of raising. `bookmark_exists` is only a
cheap pre-check used by incremental sync to decide where to stop.
"""
import logging
from datetime import datetime
from enum import StrEnum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import exists, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from models.account import Account
from models.bookmark import BOOKMARK_ACCOUNT_URL_CONSTRAINT, Bookmark
from models.tag import Tag, bookmark_tags
from schemas.source import SourceBookmark
from services.domain import extract_domain, normalize_domain

logger = logging.getLogger(__name__)


class InsertOutcome(StrEnum):
    """Result of an insert-or-skip attempt."""

    CREATED = "created"
    SKIPPED = "skipped"


class AccountNotFoundError(Exception):
    """Raised when an operation requires an account that has not been imported yet."""

    def __init__(self, username: str) -> None:
        self.username = username
        super().__init__(f"Account not found: {username}")


async def get_account(db: AsyncSession, username: str) -> Account | None:
    """Get an account by its source username."""
    result = await db.execute(select(Account).where(Account.username == username))
    return result.scalar_one_or_none()


async def get_or_create_account(db: AsyncSession, username: str) -> Account:
    """
    Get an account, creating it on first import.

    Safe under concurrent callers: the insert is skipped if another session
    created the row first, and the row is re-read either way.
    """
    account = await get_account(db, username)
    if account is not None:
        return account

    await db.execute(
        pg_insert(Account)
        .values(id=uuid4(), username=username, name=username)
        .on_conflict_do_nothing(index_elements=[Account.username]),
    )
    account = await get_account(db, username)
    if account is None:
        raise RuntimeError(f"Failed to create or fetch account: {username}")
    logger.info("Using account %s (id=%s)", username, account.id)
    return account


async def list_account_usernames(db: AsyncSession) -> list[str]:
    """Return every known account username, sorted."""
    result = await db.execute(select(Account.username).order_by(Account.username))
    return list(result.scalars().all())


async def get_watermark(db: AsyncSession, account_id: UUID) -> datetime | None:
    """Most recent bookmarked_at stored for the account, or None if it has no bookmarks."""
    result = await db.execute(
        select(func.max(Bookmark.bookmarked_at)).where(Bookmark.account_id == account_id),
    )
    return result.scalar_one_or_none()


async def bookmark_exists(db: AsyncSession, account_id: UUID, url: str) -> bool:
    """Check whether the account already has a bookmark for this URL."""
    result = await db.execute(
        select(
            exists().where(
                Bookmark.account_id == account_id,
                Bookmark.url == url,
            ),
        ),
    )
    return bool(result.scalar())


def build_bookmark_values(
    record: SourceBookmark,
    account_id: UUID,
    source_base_url: str,
) -> dict[str, Any]:
    """
    Map a source record to bookmark column values.

    `domain` comes from the bookmarked URL; `normalized_domain` from the
    canonical URL when the source provides one.
    """
    canonical_url = record.entry.canonical_url or record.url
    bookmark_url = ""
    if record.location_id:
        bookmark_url = f"{source_base_url.rstrip('/')}/entry/{record.location_id}"
    return {
        "account_id": account_id,
        "url": record.url,
        "title": record.entry.title,
        "comment": record.comment,
        "description": record.comment_expanded,
        "domain": extract_domain(record.url),
        "normalized_domain": normalize_domain(canonical_url),
        "canonical_url": record.entry.canonical_url,
        "root_url": record.entry.root_url,
        "summary": record.entry.summary,
        "bookmark_url": bookmark_url,
        "bookmarked_at": record.created,
    }


async def get_or_create_tags(db: AsyncSession, labels: list[str]) -> list[Tag]:
    """
    Get existing tags or create new ones, in the order given.

    Labels are global; blank and repeated labels are dropped.
    """
    unique_labels = list(dict.fromkeys(label.strip() for label in labels if label.strip()))
    if not unique_labels:
        return []

    result = await db.execute(select(Tag).where(Tag.label.in_(unique_labels)))
    by_label = {tag.label: tag for tag in result.scalars()}

    missing = [label for label in unique_labels if label not in by_label]
    if missing:
        await db.execute(
            pg_insert(Tag)
            .values([{"id": uuid4(), "label": label} for label in missing])
            .on_conflict_do_nothing(index_elements=[Tag.label]),
        )
        # Re-read so rows created by a concurrent importer are picked up too
        result = await db.execute(select(Tag).where(Tag.label.in_(missing)))
        by_label.update({tag.label: tag for tag in result.scalars()})

    return [by_label[label] for label in unique_labels]


async def attach_tags(
    db: AsyncSession,
    bookmark_id: UUID,
    account_id: UUID,
    tags: list[Tag],
) -> None:
    """Link tags to a bookmark; existing links are left untouched."""
    if not tags:
        return
    await db.execute(
        pg_insert(bookmark_tags)
        .values([
            {"bookmark_id": bookmark_id, "tag_id": tag.id, "account_id": account_id}
            for tag in tags
        ])
        .on_conflict_do_nothing(index_elements=["bookmark_id", "tag_id"]),
    )


async def insert_bookmark(
    db: AsyncSession,
    account_id: UUID,
    record: SourceBookmark,
    source_base_url: str,
) -> InsertOutcome:
    """
    Insert a source record unless the account already has its URL.

    Args:
        db: Database session.
        account_id: Owning account.
        record: Source record to persist.
        source_base_url: Used to build the link back to the source entry page.

    Returns:
        InsertOutcome.CREATED if a row was written, InsertOutcome.SKIPPED otherwise.

    Note:
        Does not commit. Tags are only attached to newly created bookmarks.
    """
    values = build_bookmark_values(record, account_id, source_base_url)
    result = await db.execute(
        pg_insert(Bookmark)
        .values(id=uuid4(), **values)
        .on_conflict_do_nothing(constraint=BOOKMARK_ACCOUNT_URL_CONSTRAINT)
        .returning(Bookmark.id),
    )
    bookmark_id = result.scalar_one_or_none()
    if bookmark_id is None:
        return InsertOutcome.SKIPPED

    tags = await get_or_create_tags(db, record.tags)
    await attach_tags(db, bookmark_id, account_id, tags)
    return InsertOutcome.CREATED
