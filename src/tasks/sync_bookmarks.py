"""
Scheduled incremental sync.

Imports bookmarks added on the source since the last run, for every account
that has been imported before. Designed to run as a cron job, as an
alternative to calling the HTTP trigger.

Usage:
    python -m tasks.sync_bookmarks
"""
import asyncio
import logging

from core.config import get_settings
from services.sync_service import SyncSummary, run_sync

logger = logging.getLogger(__name__)


async def run_scheduled_sync() -> SyncSummary:
    """Run one sync pass with a session per account and report failures."""
    summary = await run_sync(settings=get_settings())
    for item in summary.results:
        if item.error is not None:
            logger.warning("Sync failed for %s: %s", item.account, item.error)
    return summary


def main() -> None:
    """Entry point for running the sync as a script."""
    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(run_scheduled_sync())


if __name__ == "__main__":
    main()
