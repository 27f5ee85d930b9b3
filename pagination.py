"""
=============================================================================
PAGINATION.PY — Offset pagination shared by every list endpoint
=============================================================================
Same contract everywhere:
  in  → page (>= 1, default 1), limit (1..100)
  out → skip = (page - 1) * limit
        meta = {currentPage, totalPages, totalItems, itemsPerPage,
                hasNextPage, hasPrevPage}

Embedded collections are sliced in memory (paginate), catalog queries
(exercises, challenges) push skip/limit down to SQL. The meta block is
identical in both cases.
"""

import math
from typing import Optional, Sequence

from errors import ValidationError

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100


def parse_pagination(page: Optional[int] = None, limit: Optional[int] = None,
                     default_limit: int = DEFAULT_LIMIT) -> tuple[int, int, int]:
    """Validates page/limit and returns (page, limit, skip)"""
    page = DEFAULT_PAGE if page is None else page
    limit = default_limit if limit is None else limit

    if page < 1:
        raise ValidationError("Page must be a positive integer",
                              [{"field": "page", "message": "must be >= 1"}])
    if limit < 1 or limit > MAX_LIMIT:
        raise ValidationError(f"Limit must be between 1 and {MAX_LIMIT}",
                              [{"field": "limit", "message": f"must be 1..{MAX_LIMIT}"}])

    return page, limit, (page - 1) * limit


def pagination_meta(page: int, limit: int, total: int) -> dict:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "currentPage": page,
        "totalPages": total_pages,
        "totalItems": total,
        "itemsPerPage": limit,
        "hasNextPage": page < total_pages,
        "hasPrevPage": page > 1,
    }


def paginate(items: Sequence, page: int, limit: int) -> tuple[list, dict]:
    """Slices an already filtered + sorted list. Returns (page_items, meta)"""
    skip = (page - 1) * limit
    return list(items[skip:skip + limit]), pagination_meta(page, limit, len(items))
