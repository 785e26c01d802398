"""
Full import of one account's bookmarks.

Usage:
    python -m tasks.import_bookmarks USERNAME
    python -m tasks.import_bookmarks USERNAME --limit 100
    python -m tasks.import_bookmarks USERNAME --skip 200 --limit 100
    python -m tasks.import_bookmarks USERNAME --limit 100 --total 1523
    python -m tasks.import_bookmarks USERNAME --latest

With --limit and --total the oldest bookmarks are imported first, starting
from the last page. --latest only imports bookmarks newer than the newest one
already stored. Ctrl-C stops the import before the next page is fetched;
pages already processed stay committed.
"""
import argparse
import asyncio
import logging
import signal
from collections.abc import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings, get_settings
from services.bookmark_store import AccountNotFoundError, get_account, get_watermark
from services.import_service import BookmarkImporter, ImportCancelledError, ImportResult
from services.source_client import PageFetcher, create_source_client

logger = logging.getLogger(__name__)


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {number}")
    return number


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    """Command-line interface for the import task."""
    parser = argparse.ArgumentParser(
        prog="python -m tasks.import_bookmarks",
        description="Import bookmarks for one account from the bookmarking service.",
    )
    parser.add_argument("username", help="Account name on the bookmarking service")
    parser.add_argument("--limit", type=_positive_int, help="Stop after importing this many bookmarks")  # noqa: E501
    parser.add_argument("--skip", type=_non_negative_int, help="Pass over this many newest bookmarks first")  # noqa: E501
    parser.add_argument("--total", type=_non_negative_int, help="Total bookmarks on the source; with --limit imports the oldest ones")  # noqa: E501
    parser.add_argument("--latest", action="store_true", help="Only import bookmarks newer than the newest stored one")  # noqa: E501
    return parser


async def run_import(
    args: argparse.Namespace,
    db: AsyncSession,
    client: PageFetcher,
    settings: Settings,
    cancel_event: asyncio.Event | None = None,
) -> ImportResult:
    """
    Run the import described by parsed arguments.

    Args:
        args: Parsed command-line arguments.
        db: Database session.
        client: Page fetcher for the source.
        settings: Provides page size and source URL.
        cancel_event: When set, the import stops before the next page fetch.

    Returns:
        ImportResult with counters and the stop reason.
    """
    importer = BookmarkImporter(
        db,
        client,
        page_size=settings.source_page_size,
        source_base_url=settings.source_base_url,
        cancel_event=cancel_event,
    )
    if args.latest:
        account = await get_account(db, args.username)
        since = await get_watermark(db, account.id) if account is not None else None
        return await importer.import_latest(args.username, since)
    return await importer.import_all(
        args.username,
        limit=args.limit,
        skip=args.skip,
        total_count=args.total,
    )


async def _main(args: argparse.Namespace) -> int:
    from db.session import async_session_factory

    settings = get_settings()
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, cancel_event.set)

    try:
        async with create_source_client(settings) as client, async_session_factory() as session:
            result = await run_import(args, session, client, settings, cancel_event)
    except ImportCancelledError as e:
        logger.warning("%s", e)
        return 130
    except AccountNotFoundError as e:
        logger.error("%s; run a full import first", e)
        return 1
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)

    logger.info("Done: %s", result.to_dict())
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for running the import as a script."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    return asyncio.run(_main(args))


if __name__ == "__main__":
    raise SystemExit(main())
