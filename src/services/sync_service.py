"""
Incremental sync across every known account.

Each account is imported independently: its watermark is looked up, the
incremental importer runs, and any exception is caught and reported for that
account alone so sibling accounts still sync. A failed catch-up is rolled
back as a whole, leaving the watermark where it was so the next run retries
the same range.
"""
import asyncio
import logging
from datetime import UTC, datetime

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import Settings, get_settings
from services.bookmark_store import get_account, get_watermark, list_account_usernames
from services.import_service import BookmarkImporter
from services.source_client import PageFetcher, create_source_client

logger = logging.getLogger(__name__)


class SyncResultItem(BaseModel):
    """Outcome for one account: either an imported count or an error message."""

    account: str
    imported: int | None = None
    since: datetime | None = None
    error: str | None = None


class SyncSummary(BaseModel):
    """Summary returned by a sync run."""

    success: bool
    results: list[SyncResultItem]
    timestamp: datetime


async def sync_account(
    db: AsyncSession,
    client: PageFetcher,
    username: str,
    settings: Settings,
) -> SyncResultItem:
    """
    Run the incremental import for one account, containing any failure.

    Args:
        db: Database session used for this account only.
        client: Page fetcher for the source.
        username: Account to sync.
        settings: Provides page size and source URL.

    Returns:
        SyncResultItem with `imported` on success or `error` on failure.
    """
    since: datetime | None = None
    try:
        account = await get_account(db, username)
        if account is not None:
            since = await get_watermark(db, account.id)
        logger.info(
            "Syncing bookmarks for %s since %s",
            username,
            since.isoformat() if since else "beginning",
        )
        importer = BookmarkImporter(
            db,
            client,
            page_size=settings.source_page_size,
            source_base_url=settings.source_base_url,
        )
        result = await importer.import_latest(username, since)
    except Exception as e:
        logger.exception("Error syncing bookmarks for %s", username)
        try:
            await db.rollback()
        except Exception:
            logger.exception("Rollback failed after syncing %s", username)
        return SyncResultItem(account=username, since=since, error=str(e) or type(e).__name__)

    return SyncResultItem(account=username, imported=result.imported, since=since)


async def run_sync(
    db: AsyncSession | None = None,
    client: PageFetcher | None = None,
    settings: Settings | None = None,
    session_factory: async_sessionmaker | None = None,
) -> SyncSummary:
    """
    Sync every known account once.

    With an explicit session, accounts run sequentially on it. Otherwise every
    account gets its own session and accounts are fanned out with at most
    `settings.sync_concurrency` running at a time; each account's pages are
    still fetched strictly in order.

    Args:
        db: Database session. If None, sessions come from `session_factory`.
        client: Page fetcher. If None, one is built from settings.
        settings: Application settings. Defaults to get_settings().
        session_factory: Session factory. Defaults to the application's.

    Returns:
        SyncSummary with one entry per account.
    """
    settings = settings or get_settings()
    logger.info("Starting bookmark sync")

    if client is None:
        async with create_source_client(settings) as source_client:
            results = await _sync_accounts(db, source_client, settings, session_factory)
    else:
        results = await _sync_accounts(db, client, settings, session_factory)

    summary = SyncSummary(success=True, results=results, timestamp=datetime.now(UTC))
    failed = sum(1 for item in results if item.error is not None)
    logger.info(
        "Bookmark sync completed: %d account(s), %d failed, %d imported",
        len(results),
        failed,
        sum(item.imported or 0 for item in results),
    )
    return summary


async def _sync_accounts(
    db: AsyncSession | None,
    client: PageFetcher,
    settings: Settings,
    session_factory: async_sessionmaker | None,
) -> list[SyncResultItem]:
    if db is not None:
        usernames = await list_account_usernames(db)
        return [await sync_account(db, client, username, settings) for username in usernames]

    if session_factory is None:
        # Imported at call time so importing this module does not create the engine
        from db.session import get_session_factory

        session_factory = get_session_factory()

    async with session_factory() as session:
        usernames = await list_account_usernames(session)

    semaphore = asyncio.Semaphore(settings.sync_concurrency)

    async def _run_one(username: str) -> SyncResultItem:
        async with semaphore, session_factory() as session:
            return await sync_account(session, client, username, settings)

    return list(await asyncio.gather(*(_run_one(username) for username in usernames)))
