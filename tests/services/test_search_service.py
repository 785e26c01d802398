"""Tests for filtered, cursor-paginated bookmark listing."""
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from core.cursor import InvalidCursorError, encode_cursor
from models.account import Account
from schemas.bookmark import BookmarkFilters, BookmarkListItem, BookmarkSort
from schemas.source import SourceBookmark, SourceEntry
from services.bookmark_store import get_or_create_account, insert_bookmark
from services.search_service import (
    list_accounts,
    list_domains,
    list_tags,
    search_bookmarks,
)

SOURCE = "https://b.example.test"
BASE = datetime(2024, 1, 1, tzinfo=UTC)


async def add_bookmark(
    db: AsyncSession,
    username: str,
    url: str,
    created: datetime = BASE,
    title: str = "",
    comment: str = "",
    tags: list[str] | None = None,
) -> None:
    account = await get_or_create_account(db, username)
    await insert_bookmark(
        db,
        account.id,
        SourceBookmark(
            url=url,
            created=created,
            comment=comment,
            tags=tags or [],
            entry=SourceEntry(title=title),
        ),
        SOURCE,
    )


async def collect_pages(
    db: AsyncSession,
    sort: BookmarkSort,
    limit: int,
    filters: BookmarkFilters | None = None,
) -> list[list[str]]:
    """Follow next_cursor until the last page; return urls per page."""
    pages: list[list[str]] = []
    cursor = None
    while True:
        page = await search_bookmarks(db, filters, sort, limit=limit, cursor=cursor)
        pages.append([b.url for b in page.items])
        assert page.has_previous_page is (cursor is not None)
        if not page.has_next_page:
            assert page.next_cursor is None
            return pages
        cursor = page.next_cursor


@pytest.fixture
async def tied_bookmarks(db_session: AsyncSession) -> list[str]:
    """Seven bookmarks sharing timestamp, title and account name."""
    urls = [f"https://tie.test/{i}" for i in range(7)]
    for i, url in enumerate(urls):
        await add_bookmark(db_session, "alice" if i % 2 else "bob", url, title="Same")
    await db_session.execute(update(Account).values(name="Same Name"))
    return urls


class TestCursorPagination:
    """Walking pages with the returned cursor."""

    @pytest.mark.parametrize("field", ["bookmarked_at", "title", "user"])
    @pytest.mark.parametrize("order", ["asc", "desc"])
    async def test__pages__ties_not_skipped_or_repeated(
        self,
        db_session: AsyncSession,
        tied_bookmarks: list[str],
        field: str,
        order: str,
    ) -> None:
        """With identical sort keys, every row appears exactly once across pages."""
        sort = BookmarkSort(field=field, order=order)

        pages = await collect_pages(db_session, sort, limit=3)
        single = await search_bookmarks(db_session, sort=sort, limit=100)

        assert [len(p) for p in pages] == [3, 3, 1]
        flattened = [url for page in pages for url in page]
        assert flattened == [b.url for b in single.items]
        assert sorted(flattened) == sorted(tied_bookmarks)

    async def test__pages__id_tiebreak_follows_sort_direction(
        self, db_session: AsyncSession, tied_bookmarks: list[str],
    ) -> None:
        """Ascending and descending orders are exact reverses of each other."""
        asc = await search_bookmarks(db_session, sort=BookmarkSort(order="asc"), limit=100)
        desc = await search_bookmarks(db_session, sort=BookmarkSort(order="desc"), limit=100)

        assert [b.id for b in asc.items] == list(reversed([b.id for b in desc.items]))

    async def test__pages__default_is_newest_first(self, db_session: AsyncSession) -> None:
        """Without a sort, bookmarks come newest first."""
        for i in range(5):
            await add_bookmark(
                db_session, "alice", f"https://a.test/{i}", created=BASE + timedelta(days=i),
            )

        page = await search_bookmarks(db_session, limit=2)

        assert [b.url for b in page.items] == ["https://a.test/4", "https://a.test/3"]
        assert page.total == 5
        assert page.has_next_page is True
        assert page.has_previous_page is False

    async def test__pages__empty_cursor_is_first_page(self, db_session: AsyncSession) -> None:
        """An empty cursor string behaves like no cursor at all."""
        for i in range(3):
            await add_bookmark(
                db_session, "alice", f"https://a.test/{i}", created=BASE + timedelta(days=i),
            )

        page = await search_bookmarks(db_session, limit=2, cursor="")

        assert [b.url for b in page.items] == ["https://a.test/2", "https://a.test/1"]
        assert page.has_previous_page is False
        assert page.has_next_page is True

    async def test__pages__mixed_keys_across_pages(self, db_session: AsyncSession) -> None:
        """Pages stay stable when some timestamps repeat and others differ."""
        created = [BASE, BASE, BASE + timedelta(hours=1), BASE + timedelta(hours=1), BASE - timedelta(hours=1)]  # noqa: E501
        for i, when in enumerate(created):
            await add_bookmark(db_session, "alice", f"https://m.test/{i}", created=when)

        pages = await collect_pages(db_session, BookmarkSort(), limit=2)

        flattened = [url for page in pages for url in page]
        assert len(flattened) == 5
        assert len(set(flattened)) == 5
        assert flattened[-1] == "https://m.test/4"

    async def test__pages__exact_multiple_of_limit(self, db_session: AsyncSession) -> None:
        """A full last page does not report a further page."""
        for i in range(4):
            await add_bookmark(
                db_session, "alice", f"https://a.test/{i}", created=BASE + timedelta(days=i),
            )

        pages = await collect_pages(db_session, BookmarkSort(), limit=2)

        assert [len(p) for p in pages] == [2, 2]

    async def test__total__ignores_cursor(self, db_session: AsyncSession) -> None:
        """The total counts every match, not just the rows after the cursor."""
        for i in range(5):
            await add_bookmark(
                db_session, "alice", f"https://a.test/{i}", created=BASE + timedelta(days=i),
            )

        first = await search_bookmarks(db_session, limit=2)
        second = await search_bookmarks(db_session, limit=2, cursor=first.next_cursor)

        assert first.total == second.total == 5

    async def test__cursor__malformed_raises(self, db_session: AsyncSession) -> None:
        """Garbage cursors are rejected."""
        with pytest.raises(InvalidCursorError):
            await search_bookmarks(db_session, cursor="garbage")

    async def test__cursor__wrong_sort_field_raises(self, db_session: AsyncSession) -> None:
        """A timestamp cursor cannot be reused for a title sort."""
        cursor = encode_cursor(BASE, uuid4())

        with pytest.raises(InvalidCursorError):
            await search_bookmarks(db_session, sort=BookmarkSort(field="title"), cursor=cursor)

    async def test__limit__must_be_positive(self, db_session: AsyncSession) -> None:
        """A zero limit is a programming error."""
        with pytest.raises(ValueError, match="limit"):
            await search_bookmarks(db_session, limit=0)


class TestFilters:
    """Filters narrow both items and total."""

    @pytest.fixture(autouse=True)
    async def seed(self, db_session: AsyncSession) -> None:
        await add_bookmark(
            db_session, "alice", "https://python.org/docs",
            created=BASE, title="Python typing guide", tags=["python", "typing"],
        )
        await add_bookmark(
            db_session, "alice", "https://rust-lang.org/book",
            created=BASE + timedelta(days=1), title="The Rust book", comment="great read",
            tags=["rust"],
        )
        await add_bookmark(
            db_session, "bob", "https://python.org/asyncio",
            created=BASE + timedelta(days=2), title="Asyncio 100%_done", tags=["python"],
        )

    async def urls(self, db: AsyncSession, **filters: object) -> set[str]:
        page = await search_bookmarks(db, BookmarkFilters(**filters), limit=100)
        assert page.total == len(page.items)
        return {b.url for b in page.items}

    async def test__search_query__terms_must_all_match(self, db_session: AsyncSession) -> None:
        """Each term must match title, comment, description, or url."""
        assert await self.urls(db_session, search_query="python guide") == {"https://python.org/docs"}  # noqa: E501
        assert await self.urls(db_session, search_query="GREAT") == {"https://rust-lang.org/book"}  # noqa: E501

    async def test__search_query__phrase(self, db_session: AsyncSession) -> None:
        """A quoted phrase matches as a whole."""
        assert await self.urls(db_session, search_query='"rust book"') == {"https://rust-lang.org/book"}  # noqa: E501
        assert await self.urls(db_session, search_query='"book rust"') == set()

    async def test__search_query__wildcards_are_literal(self, db_session: AsyncSession) -> None:
        """% and _ in the query do not act as wildcards."""
        assert await self.urls(db_session, search_query="100%_done") == {"https://python.org/asyncio"}  # noqa: E501
        assert await self.urls(db_session, search_query="1_0") == set()

    async def test__domains(self, db_session: AsyncSession) -> None:
        """Domain filter matches the bookmark hostname."""
        assert await self.urls(db_session, domains=["python.org"]) == {
            "https://python.org/docs",
            "https://python.org/asyncio",
        }

    async def test__tags__any(self, db_session: AsyncSession) -> None:
        """A bookmark matches if it carries any of the requested labels."""
        assert await self.urls(db_session, tags=["typing", "rust"]) == {
            "https://python.org/docs",
            "https://rust-lang.org/book",
        }

    async def test__users(self, db_session: AsyncSession) -> None:
        """User filter matches account usernames."""
        assert await self.urls(db_session, users=["bob"]) == {"https://python.org/asyncio"}

    async def test__date_range_inclusive(self, db_session: AsyncSession) -> None:
        """Both ends of the date range are inclusive."""
        assert await self.urls(
            db_session, date_from=BASE + timedelta(days=1), date_to=BASE + timedelta(days=2),
        ) == {"https://rust-lang.org/book", "https://python.org/asyncio"}

    async def test__combined(self, db_session: AsyncSession) -> None:
        """Filters combine with AND."""
        assert await self.urls(
            db_session, search_query="python", tags=["python"], users=["alice"],
        ) == {"https://python.org/docs"}

    async def test__filters_with_cursor(self, db_session: AsyncSession) -> None:
        """Cursor pages respect filters."""
        pages = await collect_pages(
            db_session, BookmarkSort(), limit=1, filters=BookmarkFilters(tags=["python"]),
        )

        assert pages == [["https://python.org/asyncio"], ["https://python.org/docs"]]

    async def test__items_carry_account_and_tags(self, db_session: AsyncSession) -> None:
        """Returned rows serialize with their account and sorted tag labels."""
        page = await search_bookmarks(db_session, BookmarkFilters(users=["alice"]), limit=1, sort=BookmarkSort(order="asc"))  # noqa: E501

        item = BookmarkListItem.model_validate(page.items[0])

        assert item.url == "https://python.org/docs"
        assert item.tags == ["python", "typing"]
        assert item.account is not None
        assert item.account.username == "alice"


class TestLookups:
    """Lists backing the filter forms."""

    async def test__list_domains(self, db_session: AsyncSession) -> None:
        """Distinct domains, alphabetically."""
        await add_bookmark(db_session, "alice", "https://b.test/1")
        await add_bookmark(db_session, "alice", "https://a.test/1")
        await add_bookmark(db_session, "bob", "https://a.test/2")

        assert await list_domains(db_session) == ["a.test", "b.test"]

    async def test__list_tags(self, db_session: AsyncSession) -> None:
        """Tags ordered by usage count, then label."""
        await add_bookmark(db_session, "alice", "https://a.test/1", tags=["web", "python"])
        await add_bookmark(db_session, "bob", "https://a.test/2", tags=["python"])
        await add_bookmark(db_session, "bob", "https://a.test/3", tags=["api"])

        tags = await list_tags(db_session)

        assert [(t.label, t.count) for t in tags] == [("python", 2), ("api", 1), ("web", 1)]

    async def test__list_accounts(self, db_session: AsyncSession) -> None:
        """Accounts with bookmark counts, including accounts with none."""
        await add_bookmark(db_session, "bob", "https://a.test/1")
        await add_bookmark(db_session, "bob", "https://a.test/2")
        await get_or_create_account(db_session, "alice")

        accounts = await list_accounts(db_session)

        assert [(a.username, a.count) for a in accounts] == [("alice", 0), ("bob", 2)]
