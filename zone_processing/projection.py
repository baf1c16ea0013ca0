"""Paging of filtered records for display."""

import math
from dataclasses import dataclass
from typing import Any, Sequence, Tuple


@dataclass(frozen=True)
class Page:
    """One window of records plus the paging figures it was cut with."""

    items: Tuple[Any, ...]
    page: int
    page_size: int
    total_pages: int
    total_items: int


def count_pages(total_items: int, page_size: int) -> int:
    """ceil(total_items / page_size); an empty result has zero pages."""
    return math.ceil(total_items / page_size)


def project(records: Sequence[Any], page: int, page_size: int) -> Page:
    """
    Cut one page out of the current (already filtered) records.

    Args:
        records: Filtered records, in display order
        page: 1-based page number
        page_size: Records per page

    Returns:
        Page whose items are empty when page is past the last page
    """
    if page < 1:
        raise ValueError(f"page must be at least 1, got {page}")
    if page_size < 1:
        raise ValueError(f"page_size must be positive, got {page_size}")

    total_items = len(records)
    start = (page - 1) * page_size
    return Page(
        items=tuple(records[start : start + page_size]),
        page=page,
        page_size=page_size,
        total_pages=count_pages(total_items, page_size),
        total_items=total_items,
    )


def clamp_page(page: int, total_pages: int) -> int:
    """Pull a page number back into 1..total_pages (1 when there are no pages)."""
    return max(1, min(page, total_pages))
