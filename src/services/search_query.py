"""Parsing of free-text search input into quoted phrases and plain terms."""
import re
from dataclasses import dataclass, field

PHRASE_PATTERN = re.compile(r'"([^"]*)"')


@dataclass
class ParsedSearchQuery:
    """Search input split into double-quoted phrases and whitespace-separated terms."""

    phrases: list[str] = field(default_factory=list)
    terms: list[str] = field(default_factory=list)

    @property
    def patterns(self) -> list[str]:
        """Non-empty phrases and terms, each of which must match."""
        return [p for p in self.phrases if p.strip()] + self.terms


def parse_search_query(query: str) -> ParsedSearchQuery:
    """
    Split a search string into phrases and terms.

    ``'python "type hints" asyncio'`` yields phrases ``["type hints"]`` and
    terms ``["python", "asyncio"]``. Empty quotes produce an empty phrase,
    which is ignored when matching.
    """
    phrases = PHRASE_PATTERN.findall(query)
    remainder = PHRASE_PATTERN.sub(" ", query)
    terms = remainder.split()
    return ParsedSearchQuery(phrases=phrases, terms=terms)


def escape_ilike(value: str) -> str:
    r"""
    Escape special ILIKE characters for safe use in LIKE/ILIKE patterns.

    PostgreSQL LIKE/ILIKE treats these characters specially:
    - % matches any sequence of characters
    - _ matches any single character
    - \\ is the escape character

    This function escapes them so they match literally.
    """
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
