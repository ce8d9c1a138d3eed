"""Page Selection - pure rules deciding which extracted pages get embedded.

Invariants:
    - Pages whose text is empty after strip() are never embedded
    - Original page numbers are preserved (no renumbering after filtering)
    - Raises NoExtractableTextError when nothing survives
"""

from briefly.core.domain_types import PageText
from briefly.core.errors import ErrorContext, NoExtractableTextError


def select_text_pages(
    pages: list[PageText], context: ErrorContext | None = None,
) -> list[PageText]:
    """Drop blank pages. Fails if the whole document is blank (e.g. scanned)."""
    valid = [p for p in pages if p.text and p.text.strip()]
    if not valid:
        raise NoExtractableTextError(context)
    return valid


def batched(items: list, size: int) -> list[list]:
    """Split items into consecutive batches of at most `size`."""
    if size < 1:
        raise ValueError("batch size must be >= 1")
    return [items[i:i + size] for i in range(0, len(items), size)]
