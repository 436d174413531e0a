"""
Pagination helpers shared by listing services.
"""

import math
from typing import Any, Dict


def offset(page: int, limit: int) -> int:
    return (page - 1) * limit


def pagination(total: int, page: int, limit: int) -> Dict[str, Any]:
    return {
        "total": total,
        "page": page,
        "pages": math.ceil(total / limit) if limit else 0,
        "limit": limit,
    }


def search_pagination(total: int, page: int, limit: int) -> Dict[str, Any]:
    """Pagination block with navigation hints for search results."""
    block = pagination(total, page, limit)
    has_next = page < block["pages"]
    has_prev = page > 1
    block.update({
        "has_next_page": has_next,
        "has_prev_page": has_prev,
        "next_page": page + 1 if has_next else None,
        "prev_page": page - 1 if has_prev else None,
    })
    return block
