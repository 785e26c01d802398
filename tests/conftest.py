"""Pytest fixtures for testing."""
import os
from collections.abc import AsyncGenerator, Callable, Generator
from datetime import UTC, datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncConnection,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from testcontainers.postgres import PostgresContainer

from core.rate_limiter import reset_host_rate_limiters
from db.schema import create_schema
from schemas.source import SourceBookmark, SourceEntry
from services.source_client import RawRecord, SourcePage


# Newest record in generated histories; older records step back one minute each
NEWEST = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


class FakeSourceClient:
    """
    In-memory page fetcher that pages records the way the source does.

    Records are given newest first. Page N (1-based; None and 0 mean 1) holds
    records [(N-1) * page_size, N * page_size) and reports a next link while
    more records follow. Records may be raw dicts standing in for malformed
    source data, and `page_errors` fails single `(username, page)` fetches.
    """

    def __init__(
        self,
        records_by_user: dict[str, list[RawRecord]] | None = None,
        page_size: int = 20,
        errors: dict[str, Exception] | None = None,
        page_errors: dict[tuple[str, int], Exception] | None = None,
    ) -> None:
        self.records_by_user = records_by_user or {}
        self.page_size = page_size
        self.errors = errors or {}
        self.page_errors = page_errors or {}
        self.calls: list[tuple[str, int | None]] = []

    async def fetch_page(self, username: str, page: int | None = None) -> SourcePage:
        self.calls.append((username, page))
        if username in self.errors:
            raise self.errors[username]
        page_number = max(page or 1, 1)
        if (username, page_number) in self.page_errors:
            raise self.page_errors[(username, page_number)]
        records = self.records_by_user.get(username, [])
        start = (page_number - 1) * self.page_size
        return SourcePage(
            bookmarks=list(records[start:start + self.page_size]),
            has_next=start + self.page_size < len(records),
        )

    def pages_requested(self, username: str) -> list[int | None]:
        return [page for user, page in self.calls if user == username]


def build_record(
    url: str,
    created: datetime,
    tags: list[str] | None = None,
    title: str = "",
    location_id: str = "",
) -> SourceBookmark:
    """Build a source record with optional entry metadata."""
    return SourceBookmark(
        url=url,
        created=created,
        tags=tags or [],
        location_id=location_id,
        entry=SourceEntry(title=title or url),
    )


def build_records(
    count: int,
    prefix: str = "https://example.com/item",
    newest: datetime = NEWEST,
) -> list[SourceBookmark]:
    """`count` records newest first, one minute apart; url suffix 0 is the newest."""
    return [
        build_record(f"{prefix}/{i}", newest - timedelta(minutes=i))
        for i in range(count)
    ]


@pytest.fixture
def make_record() -> Callable[..., SourceBookmark]:
    """Factory for a single source record."""
    return build_record


@pytest.fixture
def make_records() -> Callable[..., list[SourceBookmark]]:
    """Factory for a newest-first history of source records."""
    return build_records


@pytest.fixture
def fake_source() -> Callable[..., FakeSourceClient]:
    """Factory for an in-memory source client."""
    return FakeSourceClient


@pytest.fixture(autouse=True)
def clear_rate_limiters() -> Generator[None]:
    """Per-host limiters are process-wide; start every test without history."""
    reset_host_rate_limiters()
    yield
    reset_host_rate_limiters()


@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer]:
    """Start a PostgreSQL container for the test session."""
    with PostgresContainer("postgres:16", driver="asyncpg") as postgres:
        yield postgres


@pytest.fixture(scope="session")
def database_url(postgres_container: PostgresContainer) -> str:
    """
    Get the database URL from the container and set it in environment.

    This must be set before any app imports that trigger Settings validation.
    """
    url = postgres_container.get_connection_url()
    os.environ["DATABASE_URL"] = url
    return url


@pytest.fixture
async def async_engine(database_url: str) -> AsyncGenerator[AsyncEngine]:
    """Create an async engine for testing."""
    engine = create_async_engine(database_url, echo=False)
    await create_schema(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_connection(async_engine: AsyncEngine) -> AsyncGenerator[AsyncConnection]:
    """
    Create a connection with a transaction that will be rolled back after the test.

    This provides test isolation - each test runs in its own transaction
    that is rolled back, so tests don't affect each other.
    """
    async with async_engine.connect() as connection:
        transaction = await connection.begin()
        try:
            yield connection
        finally:
            await transaction.rollback()


@pytest.fixture
async def db_session(db_connection: AsyncConnection) -> AsyncGenerator[AsyncSession]:
    """
    Create an async session bound to the test transaction.

    With join_transaction_mode="create_savepoint", the importer's per-page
    commit() and per-account rollback() only touch savepoints inside the
    outer test transaction.
    """
    session_factory = async_sessionmaker(
        bind=db_connection,
        class_=AsyncSession,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )

    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(
    db_session: AsyncSession,
) -> AsyncGenerator[AsyncClient]:
    """Create a test client with database session override."""
    # Clear the settings cache so it picks up DATABASE_URL from environment
    from core.config import get_settings

    get_settings.cache_clear()

    from api.main import app
    from db.session import get_async_session

    async def override_get_async_session() -> AsyncGenerator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_async_session

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()
