"""Deterministic keys for watch criteria filter tuples.

Two criteria owned by the same user are duplicates when their filter tuples
(keyword, category_id, price_min, price_max) are identical. The tuple is
reduced to a SHA256 ``filter_key`` so the database can enforce uniqueness with
a single indexed column.
"""

import hashlib
import re
from typing import Optional


def normalize_keyword(keyword: Optional[str]) -> Optional[str]:
    """Normalize a keyword for comparison.

    Lowercases, trims, and collapses internal whitespace. Blank keywords
    become None, which means "no keyword filter".

    Example:
        >>> normalize_keyword("  Mountain   BIKE ")
        'mountain bike'
        >>> normalize_keyword("   ") is None
        True
    """
    if keyword is None:
        return None

    normalized = re.sub(r"\s+", " ", keyword.strip().lower())
    return normalized or None


def _format_bound(value: Optional[float]) -> str:
    if value is None:
        return "-"
    # repr() of a float is exact and round-trips, so 100 and 100.0 share a key
    return repr(float(value))


def compute_filter_key(
    keyword: Optional[str],
    category_id: Optional[int],
    price_min: Optional[float],
    price_max: Optional[float],
) -> str:
    """Compute the uniqueness key for a filter tuple.

    Args:
        keyword: Keyword filter (normalized before hashing)
        category_id: Category filter or None
        price_min: Inclusive lower price bound or None
        price_max: Inclusive upper price bound or None

    Returns:
        Hexadecimal SHA256 digest (64 characters)

    Example:
        >>> compute_filter_key("Bike", 5, None, None) == compute_filter_key(" bike ", 5, None, None)
        True
    """
    composite = "|".join(
        [
            normalize_keyword(keyword) or "",
            "-" if category_id is None else str(int(category_id)),
            _format_bound(price_min),
            _format_bound(price_max),
        ]
    )
    return hashlib.sha256(composite.encode("utf-8")).hexdigest()
