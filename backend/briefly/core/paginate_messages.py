"""Message Pagination - pure cursor logic for the infinite message feed.

Invariants:
    - Caller fetches limit + 1 rows, newest first
    - When more than `limit` rows come back, the extra row is removed and its id
      becomes next_cursor; otherwise next_cursor is None
    - The page a cursor points to starts at (and includes) the cursor message
"""

from typing import Sequence, TypeVar

T = TypeVar("T")


def split_page(rows: Sequence[T], limit: int) -> tuple[list[T], T | None]:
    """Return (page, overflow_row). overflow_row is the first row of the next page."""
    items = list(rows)
    if len(items) > limit:
        overflow = items.pop()
        return items, overflow
    return items, None
