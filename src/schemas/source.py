"""Pydantic schemas for the bookmarking service's user-bookmarks API."""
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SourceEntry(BaseModel):
    """Page-level metadata the source attaches to each bookmark."""

    model_config = ConfigDict(extra="ignore")

    title: str = ""
    canonical_url: str = ""
    root_url: str = ""
    summary: str = ""

    @field_validator("title", "canonical_url", "root_url", "summary", mode="before")
    @classmethod
    def none_to_empty(cls, v: str | None) -> str:
        """The source sends null for missing text fields."""
        return v or ""


class SourceBookmark(BaseModel):
    """One bookmark record as returned by the source (not persisted as-is)."""

    model_config = ConfigDict(extra="ignore")

    url: str
    created: datetime
    comment: str = ""
    comment_expanded: str = ""
    tags: list[str] = []
    location_id: str = ""
    entry: SourceEntry = Field(default_factory=SourceEntry)

    @field_validator("comment", "comment_expanded", "location_id", mode="before")
    @classmethod
    def none_to_empty(cls, v: str | int | None) -> str:
        """Normalize nulls (and numeric location ids) to strings."""
        if v is None:
            return ""
        return str(v)

    @field_validator("created")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        """Treat timestamps without an offset as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @field_validator("tags", mode="before")
    @classmethod
    def drop_empty_tags(cls, v: list[str] | None) -> list[str]:
        """Drop blank labels."""
        if not v:
            return []
        return [tag for tag in v if tag and tag.strip()]


class SourcePagerLink(BaseModel):
    """Link to another page of results."""

    model_config = ConfigDict(extra="ignore")

    label: str = ""
    xhr_path: str = ""
    page_path: str = ""


class SourcePager(BaseModel):
    """Pagination block; `next` is present iff another page exists."""

    model_config = ConfigDict(extra="ignore")

    next: SourcePagerLink | None = None


class SourceItem(BaseModel):
    """
    Container for the page's bookmarks.

    Records are kept unparsed so one malformed record cannot reject the whole
    page; each is validated as a SourceBookmark when it is imported.
    """

    model_config = ConfigDict(extra="ignore")

    bookmarks: list[Any] = []


class SourceBookmarksResponse(BaseModel):
    """Raw response body of `GET /api/users/{username}/bookmarks`."""

    model_config = ConfigDict(extra="ignore")

    pager: SourcePager = Field(default_factory=SourcePager)
    item: SourceItem = Field(default_factory=SourceItem)
