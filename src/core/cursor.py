"""
Opaque pagination cursors built from an (order value, id) pair.

A cursor is serialized as ``"<order value>_<id>"`` and decoded by splitting on
the first underscore. Datetime order values are written as ISO-8601; text
order values (titles, usernames) are hex-encoded so they can never contain
the separator.
"""
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

CURSOR_SEPARATOR = "_"


class InvalidCursorError(ValueError):
    """Raised when a cursor string cannot be decoded."""

    def __init__(self, cursor: str, reason: str = "malformed cursor") -> None:
        self.cursor = cursor
        self.reason = reason
        super().__init__(f"Invalid cursor '{cursor}': {reason}")


@dataclass(frozen=True)
class Cursor:
    """Decoded cursor parts, still in their serialized string form."""

    raw: str
    order_value: str
    id: str

    def as_datetime(self) -> datetime:
        """Interpret the order value as an ISO-8601 timestamp."""
        try:
            return datetime.fromisoformat(self.order_value)
        except ValueError as e:
            raise InvalidCursorError(self.raw, "order value is not a timestamp") from e

    def as_text(self) -> str:
        """Interpret the order value as hex-encoded UTF-8 text."""
        try:
            return bytes.fromhex(self.order_value).decode("utf-8")
        except ValueError as e:
            raise InvalidCursorError(self.raw, "order value is not encoded text") from e

    def as_uuid(self) -> UUID:
        """Interpret the id part as a UUID."""
        try:
            return UUID(self.id)
        except ValueError as e:
            raise InvalidCursorError(self.raw, "id is not a UUID") from e


def encode_cursor(order_value: datetime | str, item_id: UUID | str) -> str:
    """
    Encode an (order value, id) pair into an opaque cursor string.

    Args:
        order_value: Sort key of the row. Datetimes become ISO-8601, text is hex-encoded.
        item_id: Row identifier used as the tiebreaker.

    Returns:
        The cursor string ``"<order value>_<id>"``.
    """
    if isinstance(order_value, datetime):
        encoded = order_value.isoformat()
    else:
        encoded = order_value.encode("utf-8").hex()
    return f"{encoded}{CURSOR_SEPARATOR}{item_id}"


def decode_cursor(cursor: str) -> Cursor:
    """
    Split a cursor on its first separator.

    Raises:
        InvalidCursorError: If the separator is missing or the id part is empty.
    """
    order_value, sep, item_id = cursor.partition(CURSOR_SEPARATOR)
    if not sep or not item_id:
        raise InvalidCursorError(cursor)
    return Cursor(raw=cursor, order_value=order_value, id=item_id)
