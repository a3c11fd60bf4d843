import math
from dataclasses import dataclass
from typing import Optional

from timetracker.core.config import Settings

LIKE_ESCAPE = "\\"


@dataclass(frozen=True)
class PageRequest:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class Page:
    current_page: int
    limit: int
    total_items: int

    @property
    def total_pages(self) -> int:
        if self.total_items == 0:
            return 0
        return math.ceil(self.total_items / self.limit)

    @property
    def has_next(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.current_page > 1


def page_request(settings: Settings, page: Optional[int], limit: Optional[int]) -> PageRequest:
    page = max(1, int(page or 1))
    limit = int(limit or settings.pagination_default_limit)
    limit = max(1, min(limit, settings.pagination_max_limit))
    return PageRequest(page=page, limit=limit)


def paginate(query, request: PageRequest):
    """Run a count and a page fetch for an ORM query; returns (rows, Page)."""
    total = query.order_by(None).count()
    rows = query.offset(request.offset).limit(request.limit).all()
    return rows, Page(current_page=request.page, limit=request.limit, total_items=total)


def contains_pattern(text: str) -> str:
    """ILIKE pattern matching `text` anywhere; wildcards in the input match literally."""
    escaped = text.strip().replace(LIKE_ESCAPE, LIKE_ESCAPE * 2).replace("%", r"\%").replace("_", r"\_")
    return f"%{escaped}%"
