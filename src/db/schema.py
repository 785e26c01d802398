"""Create the database schema from the model metadata."""
import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncEngine

from models import Base

logger = logging.getLogger(__name__)


async def create_schema(engine: AsyncEngine) -> None:
    """Create every table and index that does not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema is up to date (%d tables)", len(Base.metadata.tables))


def main() -> None:
    """Entry point for `python -m db.schema`."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    from db.session import engine

    asyncio.run(create_schema(engine))


if __name__ == "__main__":
    main()
