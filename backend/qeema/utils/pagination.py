"""Page-window helpers shared by every list endpoint."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Optional


def _coerce_int(raw: Any) -> Optional[int]:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


@dataclass(frozen=True)
class PageParams:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def parse_pagination(page: Any, limit: Any, default_limit: int = 10, max_limit: int = 100) -> PageParams:
    """Turn raw query values into a valid page window.

    Never raises: missing or non-numeric values fall back to page 1 and
    `default_limit`, and the limit is clamped to `[1, max_limit]`.
    """
    p = _coerce_int(page)
    if p is None or p < 1:
        p = 1
    lim = _coerce_int(limit)
    if lim is None:
        lim = default_limit
    lim = min(max(1, lim), max_limit)
    return PageParams(page=p, limit=lim)


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit > 0 else 0


@dataclass
class Page:
    items: list = field(default_factory=list)
    page: int = 1
    limit: int = 10
    total: int = 0

    @property
    def total_pages(self) -> int:
        return total_pages(self.total, self.limit)

    def meta(self) -> dict:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "totalPages": self.total_pages,
        }
