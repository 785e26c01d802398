"""Pydantic schemas for bookmark search endpoints."""
from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

SortField = Literal["bookmarked_at", "title", "user"]
SortOrder = Literal["asc", "desc"]


class BookmarkFilters(BaseModel):
    """Non-cursor filters applied to both the page query and the total count."""

    search_query: str = ""
    domains: list[str] = []
    tags: list[str] = []  # Tag labels; a bookmark matches if it has any of them
    users: list[str] = []  # Account usernames
    date_from: datetime | None = None
    date_to: datetime | None = None

    @model_validator(mode="after")
    def check_date_range(self) -> "BookmarkFilters":
        """Reject inverted date ranges."""
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must not be after date_to")
        return self


class BookmarkSort(BaseModel):
    """Sort field and direction. `id` is always the tiebreaker in the same direction."""

    field: SortField = "bookmarked_at"
    order: SortOrder = "desc"


class AccountSummary(BaseModel):
    """Account embedded in bookmark responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    name: str


class BookmarkListItem(BaseModel):
    """
    Schema for bookmark list items.

    Note: Uses model_validator to extract tag labels from the tag_objects
    relationship when eagerly loaded.
    """

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    url: str
    title: str
    comment: str
    description: str
    domain: str
    normalized_domain: str
    canonical_url: str
    root_url: str
    summary: str
    bookmark_url: str
    bookmarked_at: datetime
    created_at: datetime
    updated_at: datetime
    account: AccountSummary | None = None
    tags: list[str]

    @model_validator(mode="before")
    @classmethod
    def extract_tag_labels(cls, data: Any) -> Any:
        """
        Extract tag labels from tag_objects relationship.

        Only accesses relationships that are already loaded (not lazy) to avoid
        triggering database queries outside async context.
        """
        # Handle SQLAlchemy model objects
        if hasattr(data, "__dict__"):
            data_dict = {
                key: getattr(data, key)
                for key in [
                    "id", "url", "title", "comment", "description", "domain",
                    "normalized_domain", "canonical_url", "root_url", "summary",
                    "bookmark_url", "bookmarked_at", "created_at", "updated_at",
                ]
                if hasattr(data, key)
            }
            loaded = data.__dict__
            if loaded.get("account") is not None:
                data_dict["account"] = loaded["account"]
            if loaded.get("tag_objects") is not None:
                data_dict["tags"] = sorted(tag.label for tag in loaded["tag_objects"])
            else:
                data_dict["tags"] = []
            return data_dict
        return data


class PaginationInfo(BaseModel):
    """Cursor pagination metadata."""

    has_next_page: bool
    has_previous_page: bool
    next_cursor: str | None = None


class BookmarkListResponse(BaseModel):
    """Schema for cursor-paginated bookmark list responses."""

    items: list[BookmarkListItem]
    total: int  # Total count of bookmarks matching the filters (ignores the cursor)
    pagination: PaginationInfo


class TagCount(BaseModel):
    """Schema for a tag with its bookmark count."""

    label: str
    count: int


class TagListResponse(BaseModel):
    """Schema for the tags list response."""

    tags: list[TagCount]


class AccountCount(BaseModel):
    """Schema for an account with its bookmark count."""

    username: str
    name: str
    count: int


class AccountListResponse(BaseModel):
    """Schema for the accounts list response."""

    accounts: list[AccountCount]


class DomainListResponse(BaseModel):
    """Schema for the distinct domains list response."""

    domains: list[str] = Field(default_factory=list)
