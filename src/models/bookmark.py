"""Bookmark model for storing imported bookmarks."""
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, TimestampMixin, UUIDMixin
from models.tag import bookmark_tags

if TYPE_CHECKING:
    from models.account import Account
    from models.tag import Tag


# Name referenced by the insert-or-skip upsert; keep in sync with bookmark_store.
BOOKMARK_ACCOUNT_URL_CONSTRAINT = "uq_bookmarks_account_url"


class Bookmark(Base, UUIDMixin, TimestampMixin):
    """Bookmark model - one saved URL per account, copied from the source."""

    __tablename__ = "bookmarks"
    __table_args__ = (
        # The only de-duplication boundary: one bookmark per (account, url)
        UniqueConstraint("account_id", "url", name=BOOKMARK_ACCOUNT_URL_CONSTRAINT),
        # Watermark lookup and default "newest first" listing
        Index("ix_bookmarks_account_bookmarked_at", "account_id", "bookmarked_at"),
        Index("ix_bookmarks_bookmarked_at_id", "bookmarked_at", "id"),
    )

    account_id: Mapped[UUID] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"),
        index=True,
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    comment: Mapped[str] = mapped_column(Text, nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    domain: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    normalized_domain: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    canonical_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    root_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    summary: Mapped[str] = mapped_column(Text, nullable=False, default="")
    bookmark_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    bookmarked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    account: Mapped["Account"] = relationship(back_populates="bookmarks")
    tag_objects: Mapped[list["Tag"]] = relationship(
        secondary=bookmark_tags,
        back_populates="bookmarks",
        viewonly=True,
    )
