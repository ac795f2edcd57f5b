"""Offset pagination over SQLAlchemy queries."""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List

from sqlalchemy.orm import Query


@dataclass
class Page:
    items: List[Any]
    page: int
    limit: int
    total: int
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def meta(self) -> Dict[str, Any]:
        """Pagination block of the response envelope."""
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "totalPages": self.total_pages,
            **self.extra,
        }


def empty_page(page: int, limit: int) -> Page:
    return Page(items=[], page=page, limit=limit, total=0)


def paginate(query: Query, page: int, limit: int) -> Page:
    """
    Apply offset/limit to an ordered query and count the unpaged total.

    Args:
        query: Filtered and ordered query
        page: 1-based page number
        limit: Page size

    Returns:
        Page with the requested slice and the total row count
    """
    total = query.order_by(None).enable_eagerloads(False).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return Page(items=items, page=page, limit=limit, total=total)
