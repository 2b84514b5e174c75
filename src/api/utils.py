from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

DEFAULT_PAGE = 1
DEFAULT_PER_PAGE = 10
MAX_PER_PAGE = 100
# Keeps the row offset within SQLite's signed 64-bit integer range
MAX_PAGE = (2**63 - 1) // MAX_PER_PAGE


# PUBLIC_INTERFACE
def normalize_pagination(page: Optional[int], per_page: Optional[int]) -> Tuple[int, int]:
    """
    Clamp requested pagination values.

    - page: clamped into [1, MAX_PAGE]; missing or <= 0 becomes 1
    - per_page: clamped into [1, MAX_PER_PAGE]; missing uses DEFAULT_PER_PAGE
    """
    p = DEFAULT_PAGE if page is None else min(max(page, 1), MAX_PAGE)
    pp = DEFAULT_PER_PAGE if per_page is None else min(max(per_page, 1), MAX_PER_PAGE)
    return p, pp


def pagination_window(page: int, per_page: int) -> Tuple[int, int]:
    """Return the (offset, limit) pair for a normalized page."""
    return (page - 1) * per_page, per_page


# PUBLIC_INTERFACE
def pagination_envelope(
    items: Union[Sequence[Any], Iterable[Any]],
    total: int,
    page: int,
    per_page: int,
) -> Dict[str, Any]:
    """
    Build the standard pagination envelope for list endpoints.

    Args:
        items: The list/iterable of items for the current page.
        total: Total number of posts (ignoring pagination).
        page: The effective page number.
        per_page: The effective page size.

    Returns:
        Dict with keys: data, page, per_page, total.
    """
    materialized: List[Any] = list(items) if not isinstance(items, list) else items
    return {
        "data": materialized,
        "page": int(page),
        "per_page": int(per_page),
        "total": int(total),
    }
