import math
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional

PAGE_SIZE = 24

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


@dataclass(frozen=True)
class PaginationResult:
    items: List[Any] = field(default_factory=list)
    current_page: int = 1
    total_pages: int = 0
    total_jobs: int = 0
    has_next: bool = False
    has_prev: bool = False

    def meta(self) -> dict:
        """Pagination block of the list response."""
        return {
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
            "totalJobs": self.total_jobs,
            "hasNext": self.has_next,
            "hasPrev": self.has_prev,
        }


def parse_page(raw: Optional[Any]) -> int:
    """
    Page number from a raw query value.

    Uses the leading integer ("3abc" is page 3), falls back to 1 when
    absent or non-numeric, and never returns less than 1.
    """
    if raw is None:
        return 1
    if isinstance(raw, int):
        return max(1, raw)
    match = _LEADING_INT.match(str(raw))
    if not match:
        return 1
    return max(1, int(match.group(1)))


def assemble(items, page: int, total_count: int, page_size: int = PAGE_SIZE) -> PaginationResult:
    """Compute page metadata for one window of results."""
    total_pages = math.ceil(total_count / page_size) if total_count > 0 else 0
    if total_pages == 0:
        return PaginationResult(items=list(items), current_page=page, total_pages=0, total_jobs=0)
    return PaginationResult(
        items=list(items),
        current_page=page,
        total_pages=total_pages,
        total_jobs=total_count,
        has_next=page < total_pages,
        has_prev=page > 1,
    )
