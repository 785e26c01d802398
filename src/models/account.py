"""Account model - one row per bookmarking-service user we mirror."""
from typing import TYPE_CHECKING

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from models.bookmark import Bookmark


class Account(Base, UUIDMixin, TimestampMixin):
    """Account model - maps a source-site username to local bookmarks."""

    __tablename__ = "accounts"

    username: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        comment="Username on the bookmarking service - immutable natural key",
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    bookmarks: Mapped[list["Bookmark"]] = relationship(
        back_populates="account",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
