"""HTTP client for the bookmarking service's public user-bookmarks API."""
import logging
from dataclasses import dataclass
from typing import Any, Protocol, Self

import httpx
from pydantic import ValidationError

from core.config import Settings
from core.rate_limiter import IntervalRateLimiter, get_host_rate_limiter
from schemas.source import SourceBookmark, SourceBookmarksResponse

# A record as it arrives on a page: a raw JSON object, or an already-built
# SourceBookmark from an in-memory fetcher
RawRecord = dict[str, Any] | SourceBookmark

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; BookmarkAgent/1.0)"
DEFAULT_TIMEOUT = 30.0


class SourceFetchError(Exception):
    """Raised when a page cannot be fetched (non-2xx status or transport failure)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


@dataclass
class SourcePage:
    """
    One page of bookmarks, newest first as the source returns them.

    Records are unvalidated; the importer parses each one separately.
    """

    bookmarks: list[RawRecord]
    has_next: bool

    def __len__(self) -> int:
        return len(self.bookmarks)


class PageFetcher(Protocol):
    """Anything that can fetch one page of a user's bookmarks."""

    async def fetch_page(self, username: str, page: int | None = None) -> SourcePage:
        """Fetch a single page."""
        ...


class SourceClient:
    """
    Stateless page fetcher: one HTTP request per `fetch_page` call, no retries.

    Retry and stop decisions belong to the caller. The injected rate limiter is
    awaited before every request so consecutive fetches are spaced out.
    """

    def __init__(
        self,
        base_url: str,
        rate_limiter: IntervalRateLimiter,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = USER_AGENT,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.rate_limiter = rate_limiter
        self.timeout = timeout
        self.user_agent = user_agent
        self._client = http_client
        self._owns_client = http_client is None

    async def __aenter__(self) -> Self:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={"User-Agent": self.user_agent},
            )
            self._owns_client = True
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the underlying HTTP client."""
        if self._client is None:
            raise RuntimeError("SourceClient not initialized. Use it as an async context manager.")
        return self._client

    @staticmethod
    def page_path(username: str, page: int | None = None) -> tuple[str, dict[str, int]]:
        """
        Build the request path and query for a page.

        Pages are numbered from 1 by the source; `None`, 0 and 1 all address the
        first page, which is requested without a `page` parameter.
        """
        path = f"/api/users/{username}/bookmarks"
        if page is None or page <= 1:
            return path, {}
        return path, {"page": page}

    async def fetch_page(self, username: str, page: int | None = None) -> SourcePage:
        """
        Fetch one page of bookmarks for a user.

        Args:
            username: Account name on the bookmarking service.
            page: 1-based page number; omitted means the first page.

        Returns:
            SourcePage with the page's records and whether another page exists.

        Raises:
            SourceFetchError: On non-2xx status, transport error, timeout or a body
                that is not a bookmarks envelope. Malformed individual records
                do not raise here.
        """
        path, params = self.page_path(username, page)
        await self.rate_limiter.wait()

        try:
            response = await self.client.get(
                path,
                params=params,
                headers={"User-Agent": self.user_agent},
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise SourceFetchError(f"Timed out fetching bookmarks for {username}: {e}") from e
        except httpx.HTTPError as e:
            raise SourceFetchError(f"Failed to fetch bookmarks for {username}: {e}") from e

        if not response.is_success:
            raise SourceFetchError(
                f"Failed to fetch bookmarks: {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            body = SourceBookmarksResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise SourceFetchError(
                f"Invalid bookmarks response for {username}: {e}",
                status_code=response.status_code,
            ) from e

        logger.debug(
            "Fetched page %s for %s (%d bookmarks, next=%s)",
            page or 1,
            username,
            len(body.item.bookmarks),
            body.pager.next is not None,
        )
        return SourcePage(
            bookmarks=body.item.bookmarks,
            has_next=body.pager.next is not None,
        )


def create_source_client(settings: Settings) -> SourceClient:
    """Build a SourceClient from settings, sharing the per-host rate limiter."""
    return SourceClient(
        settings.source_base_url,
        get_host_rate_limiter(settings.source_host, settings.source_request_interval),
        timeout=settings.source_timeout,
        user_agent=settings.source_user_agent,
    )
