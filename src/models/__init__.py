"""SQLAlchemy models."""
from models.base import Base, TimestampMixin, UUIDMixin
from models.tag import Tag, bookmark_tags  # Must be before bookmark due to import
from models.account import Account
from models.bookmark import Bookmark

__all__ = [
    "Account",
    "Base",
    "Bookmark",
    "Tag",
    "TimestampMixin",
    "UUIDMixin",
    "bookmark_tags",
]
