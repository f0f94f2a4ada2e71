"""
Windowed Pagination

Computes the controls of a pagination bar: Prev, the first page shortcut, a
window of `radius` pages on each side of the current page, the last page
shortcut, ellipses for the gaps and Next. Pure functions, no widget code.
"""

from dataclasses import dataclass
from typing import List, Union


@dataclass(frozen=True)
class PrevControl:
    enabled: bool


@dataclass(frozen=True)
class NextControl:
    enabled: bool


@dataclass(frozen=True)
class PageNumber:
    value: int
    is_active: bool = False


@dataclass(frozen=True)
class FirstShortcut(PageNumber):
    """Jump to page 1, shown when the window no longer reaches it"""


@dataclass(frozen=True)
class LastShortcut(PageNumber):
    """Jump to the last page, shown when the window no longer reaches it"""


@dataclass(frozen=True)
class EllipsisItem:
    """Gap between a shortcut and the window"""


PageItem = Union[PrevControl, NextControl, PageNumber, EllipsisItem]


def page_count(total: int, limit: int) -> int:
    """Number of pages needed to show `total` rows, `limit` per page"""
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")
    if total <= 0:
        return 0
    return -(-total // limit)


def compute_window(current_page: int, total_pages: int, radius: int = 2) -> List[PageItem]:
    """Build the ordered pagination controls for `current_page`

    Precondition: 1 <= current_page <= total_pages. Out of range values are
    not clamped and produce an unspecified (but non-failing) result.
    """
    if total_pages <= 1:
        return []

    items: List[PageItem] = [PrevControl(enabled=current_page > 1)]

    if current_page > radius + 1:
        items.append(FirstShortcut(1))
        if current_page > radius + 2:
            items.append(EllipsisItem())

    start = max(1, current_page - radius)
    end = min(total_pages, current_page + radius)
    for page in range(start, end + 1):
        items.append(PageNumber(page, is_active=page == current_page))

    if current_page < total_pages - radius:
        if current_page < total_pages - radius - 1:
            items.append(EllipsisItem())
        items.append(LastShortcut(total_pages))

    items.append(NextControl(enabled=current_page < total_pages))
    return items
