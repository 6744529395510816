"""Opaque cursor pagination over time-ordered sequences.

A cursor is url-safe base64 of ``<iso timestamp>|<id>[|<id>...]`` naming the
last item of the previous page. Scans resume strictly after that key, so an
item inserted or removed elsewhere never causes a repeat or a skip.
"""

import base64
import binascii
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Generic, Optional, TypeVar

from ledgerkit.domain.errors import ValidationError
from ledgerkit.utils.date_parser import ensure_utc

T = TypeVar("T")

DEFAULT_LIMIT = 50
MAX_LIMIT = 200

SortKey = tuple  # (datetime, str, ...)


@dataclass(frozen=True)
class Page(Generic[T]):
    """A page of results and the cursor for the next one, if any."""

    items: list[T]
    next_cursor: Optional[str] = None


def encode_cursor(timestamp: datetime, *ids: object) -> str:
    raw = "|".join([ensure_utc(timestamp).isoformat(), *(str(i) for i in ids)])
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii")


def decode_cursor(cursor: str) -> tuple[datetime, tuple[str, ...]]:
    """Decode a cursor into its timestamp and id parts.

    Raises:
        ValidationError: If the cursor is malformed
    """
    try:
        raw = base64.urlsafe_b64decode(cursor.encode("ascii")).decode("utf-8")
        timestamp, *ids = raw.split("|")
        if not ids:
            raise ValueError("missing id")
        return ensure_utc(datetime.fromisoformat(timestamp)), tuple(ids)
    except (ValueError, UnicodeError, binascii.Error):
        raise ValidationError(f"Invalid cursor '{cursor}'")


def clamp_limit(limit: Optional[int]) -> int:
    """Return limit if it is within 1..200, else the default page size."""
    if limit is None or limit <= 0 or limit > MAX_LIMIT:
        return DEFAULT_LIMIT
    return limit


def paginate(
    items: Sequence[T],
    key: Callable[[T], SortKey],
    limit: Optional[int] = None,
    cursor: Optional[str] = None,
) -> tuple[int, Page[T]]:
    """Slice a page out of items already sorted ascending by key.

    Args:
        items: Items sorted by key
        key: Function returning ``(timestamp, id, ...)`` for an item
        limit: Page size (clamped to 1..200)
        cursor: Cursor from a previous page

    Returns:
        Tuple of (start index of the page in items, page)
    """
    size = clamp_limit(limit)
    start = 0
    if cursor:
        after = decode_cursor(cursor)
        start = len(items)
        for i, item in enumerate(items):
            timestamp, *ids = key(item)
            if (timestamp, tuple(str(x) for x in ids)) > after:
                start = i
                break
    end = min(start + size, len(items))
    page_items = list(items[start:end])
    next_cursor = None
    if end < len(items) and page_items:
        next_cursor = encode_cursor(*key(page_items[-1]))
    return start, Page(items=page_items, next_cursor=next_cursor)
