"""
Import bookmarks from the bookmarking service into the local store.

Three traversal modes:

- Forward backfill (`import_all`): pages newest to oldest, with an optional
  number of leading records to pass over (`skip`) and an optional cap on newly
  created bookmarks (`limit`).
- Backward backfill (`import_all` with `limit` and `total_count`): starts at
  the last page and walks towards the first, reversing each page, so the
  oldest bookmarks are imported first without walking the whole history.
- Incremental catch-up (`import_latest`): pages newest first and stops at the
  first record that is not newer than the watermark or is already stored.
  This relies on the source listing bookmarks in strictly decreasing
  creation order; history edited out of order on the source is not detected.

Pages are fetched strictly one after another. Each record is parsed and then
written in its own savepoint, so a malformed or failing record is logged and
skipped without aborting the import. Backfills commit after every page. The
incremental catch-up commits once at the end: the watermark is derived from
stored rows, so a partial catch-up left behind by a failed page would hide the
unfetched records from the next run. Page fetch errors propagate to the caller.
"""
import asyncio
import logging
import math
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from itertools import count
from typing import Self
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from schemas.source import SourceBookmark
from services.bookmark_store import (
    AccountNotFoundError,
    InsertOutcome,
    bookmark_exists,
    get_account,
    get_or_create_account,
    insert_bookmark,
)
from services.source_client import PageFetcher, RawRecord

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
DEFAULT_SOURCE_BASE_URL = "https://b.hatena.ne.jp"


class ImportCancelledError(Exception):
    """Raised between page fetches when the caller asked the import to stop."""

    def __init__(self, username: str, pages_fetched: int) -> None:
        self.username = username
        self.pages_fetched = pages_fetched
        super().__init__(f"Import for {username} cancelled after {pages_fetched} page(s)")


class StopReason(StrEnum):
    """Why a traversal ended."""

    EXHAUSTED = "exhausted"
    LIMIT_REACHED = "limit_reached"
    WATERMARK_REACHED = "watermark_reached"
    EXISTING_FOUND = "existing_found"


@dataclass
class ImportResult:
    """Counters from one import run."""

    username: str
    imported: int = 0
    skipped: int = 0
    failed: int = 0
    passed_over: int = 0
    pages: int = 0
    stop_reason: StopReason = StopReason.EXHAUSTED

    def to_dict(self) -> dict[str, int | str]:
        """Convert to simple dict for logging/return."""
        return {
            "username": self.username,
            "imported": self.imported,
            "skipped": self.skipped,
            "failed": self.failed,
            "passed_over": self.passed_over,
            "pages": self.pages,
            "stop_reason": self.stop_reason.value,
        }


class SourcePageIterator:
    """
    Async iterator over a user's pages, yielding each page's records.

    Forward iteration stops at the first empty page or at a page without a
    next link. Backward iteration visits a fixed range of page numbers and
    passes over empty pages. The cancellation event is checked before every
    fetch.
    """

    def __init__(
        self,
        client: PageFetcher,
        username: str,
        page_numbers: Iterator[int],
        *,
        reverse_pages: bool = False,
        follow_next_links: bool = True,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        self.client = client
        self.username = username
        self.reverse_pages = reverse_pages
        self.follow_next_links = follow_next_links
        self.cancel_event = cancel_event
        self.pages_fetched = 0
        self.current_page: int | None = None
        self._page_numbers = page_numbers
        self._exhausted = False

    @classmethod
    def forward(
        cls,
        client: PageFetcher,
        username: str,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> Self:
        """Newest page first, as the source orders them."""
        return cls(client, username, count(1), cancel_event=cancel_event)

    @classmethod
    def backward(
        cls,
        client: PageFetcher,
        username: str,
        last_page: int,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> Self:
        """From `last_page` down to the first page, oldest record first."""
        return cls(
            client,
            username,
            iter(range(last_page, 0, -1)),
            reverse_pages=True,
            follow_next_links=False,
            cancel_event=cancel_event,
        )

    def __aiter__(self) -> Self:
        return self

    async def __anext__(self) -> list[RawRecord]:
        while not self._exhausted:
            if self.cancel_event is not None and self.cancel_event.is_set():
                raise ImportCancelledError(self.username, self.pages_fetched)

            page_number = next(self._page_numbers, None)
            if page_number is None:
                break

            self.current_page = page_number
            page = await self.client.fetch_page(self.username, page_number)
            self.pages_fetched += 1

            if not page.bookmarks:
                if self.follow_next_links:
                    break
                logger.debug("Page %d for %s is empty, moving on", page_number, self.username)
                continue

            if self.follow_next_links and not page.has_next:
                self._exhausted = True

            if self.reverse_pages:
                return list(reversed(page.bookmarks))
            return list(page.bookmarks)

        self._exhausted = True
        raise StopAsyncIteration


class BookmarkImporter:
    """Drives one account's traversal against an injected page fetcher."""

    def __init__(
        self,
        db: AsyncSession,
        client: PageFetcher,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        source_base_url: str = DEFAULT_SOURCE_BASE_URL,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self.db = db
        self.client = client
        self.page_size = page_size
        self.source_base_url = source_base_url
        self.cancel_event = cancel_event

    async def import_all(
        self,
        username: str,
        *,
        limit: int | None = None,
        skip: int | None = None,
        total_count: int | None = None,
    ) -> ImportResult:
        """
        Import an account's history, creating the account on first use.

        Args:
            username: Account name on the bookmarking service.
            limit: Stop after this many bookmarks were newly created.
            skip: Pass over this many leading records (forward mode only) to resume
                a previously truncated backfill.
            total_count: Number of bookmarks the account has on the source. Together
                with `limit`, selects backward mode (oldest `limit` bookmarks).

        Returns:
            ImportResult with counters and the stop reason.

        Raises:
            SourceFetchError: If a page cannot be fetched.
            ImportCancelledError: If the cancellation event was set.
        """
        if limit is not None and limit < 1:
            raise ValueError("limit must be >= 1")
        if skip is not None and skip < 0:
            raise ValueError("skip must be >= 0")
        if total_count is not None and total_count < 0:
            raise ValueError("total_count must be >= 0")

        account = await get_or_create_account(self.db, username)
        await self.db.commit()

        if limit and total_count:
            result = await self._import_backward(account.id, username, limit, total_count)
        else:
            result = await self._import_forward(account.id, username, limit, skip or 0)

        logger.info("Import completed: %s", result.to_dict())
        return result

    async def import_latest(self, username: str, since: datetime | None = None) -> ImportResult:
        """
        Import bookmarks newer than what is already stored.

        Nothing is committed until the traversal finishes; on error the caller
        rolls the whole catch-up back.

        Args:
            username: Account name on the bookmarking service.
            since: Watermark; records created at or before it end the traversal.

        Returns:
            ImportResult with counters and the stop reason.

        Raises:
            AccountNotFoundError: If the account has never been imported.
            SourceFetchError: If a page cannot be fetched.
            ImportCancelledError: If the cancellation event was set.
        """
        account = await get_account(self.db, username)
        if account is None:
            raise AccountNotFoundError(username)

        logger.info(
            "Fetching latest bookmarks for %s since %s",
            username,
            since.isoformat() if since else "beginning",
        )
        result = ImportResult(username=username)
        pages = SourcePageIterator.forward(self.client, username, cancel_event=self.cancel_event)
        stop: StopReason | None = None

        async for records in pages:
            for raw in records:
                record = self._parse(raw, username, result)
                if record is None:
                    continue
                if since is not None and record.created <= since:
                    stop = StopReason.WATERMARK_REACHED
                    break
                if await bookmark_exists(self.db, account.id, record.url):
                    stop = StopReason.EXISTING_FOUND
                    break
                await self._persist(account.id, username, record, result)
            await self._finish_page(pages, result, commit=False)
            if stop is not None:
                result.stop_reason = stop
                logger.info("Stopping incremental import for %s: %s", username, stop.value)
                break

        await self.db.commit()
        result.pages = pages.pages_fetched
        logger.info("Import completed: %s", result.to_dict())
        return result

    async def _import_forward(
        self,
        account_id: UUID,
        username: str,
        limit: int | None,
        skip: int,
    ) -> ImportResult:
        if skip and limit:
            logger.info("Skipping %d bookmarks, then importing %d for %s", skip, limit, username)
        elif skip:
            logger.info("Skipping %d bookmarks, then importing all remaining for %s", skip, username)
        elif limit:
            logger.info("Limiting import for %s to %d bookmarks", username, limit)
        else:
            logger.info("Importing all bookmarks for %s", username)

        result = ImportResult(username=username)
        pages = SourcePageIterator.forward(self.client, username, cancel_event=self.cancel_event)
        remaining_skip = skip

        async for records in pages:
            for raw in records:
                if remaining_skip > 0:
                    remaining_skip -= 1
                    result.passed_over += 1
                    continue
                record = self._parse(raw, username, result)
                if record is None:
                    continue
                await self._persist(account_id, username, record, result)
                if limit is not None and result.imported >= limit:
                    result.stop_reason = StopReason.LIMIT_REACHED
                    break
            await self._finish_page(pages, result)
            if result.stop_reason is StopReason.LIMIT_REACHED:
                break

        result.pages = pages.pages_fetched
        return result

    async def _import_backward(
        self,
        account_id: UUID,
        username: str,
        limit: int,
        total_count: int,
    ) -> ImportResult:
        last_page = math.ceil(total_count / self.page_size)
        logger.info(
            "Total bookmarks for %s: %d, importing the %d oldest starting at page %d",
            username,
            total_count,
            limit,
            last_page,
        )

        result = ImportResult(username=username)
        pages = SourcePageIterator.backward(
            self.client, username, last_page, cancel_event=self.cancel_event,
        )

        async for records in pages:
            for raw in records:
                record = self._parse(raw, username, result)
                if record is None:
                    continue
                await self._persist(account_id, username, record, result)
                if result.imported >= limit:
                    result.stop_reason = StopReason.LIMIT_REACHED
                    break
            await self._finish_page(pages, result)
            if result.stop_reason is StopReason.LIMIT_REACHED:
                break

        result.pages = pages.pages_fetched
        return result

    def _parse(
        self,
        raw: RawRecord,
        username: str,
        result: ImportResult,
    ) -> SourceBookmark | None:
        """Validate one record from a page; a malformed record counts as failed."""
        try:
            return SourceBookmark.model_validate(raw)
        except ValidationError as e:
            logger.warning("Skipping malformed bookmark for %s: %s", username, e)
            result.failed += 1
            return None

    async def _persist(
        self,
        account_id: UUID,
        username: str,
        record: SourceBookmark,
        result: ImportResult,
    ) -> InsertOutcome | None:
        """Write one record inside a savepoint, counting the outcome."""
        try:
            async with self.db.begin_nested():
                outcome = await insert_bookmark(
                    self.db, account_id, record, self.source_base_url,
                )
        except Exception:
            logger.exception("Error importing bookmark %s for %s", record.url, username)
            result.failed += 1
            return None

        if outcome is InsertOutcome.CREATED:
            result.imported += 1
            logger.debug("Imported %s for %s", record.url, username)
        else:
            result.skipped += 1
        return outcome

    async def _finish_page(
        self,
        pages: SourcePageIterator,
        result: ImportResult,
        *,
        commit: bool = True,
    ) -> None:
        """Report progress, committing the page's work unless told otherwise."""
        if commit:
            await self.db.commit()
        logger.info(
            "Processed page %s for %s (imported=%d, skipped=%d, failed=%d)",
            pages.current_page,
            result.username,
            result.imported,
            result.skipped,
            result.failed,
        )
