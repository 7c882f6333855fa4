"""Utility functions for hashing, timestamps, and keyword highlighting."""

from .hashing import compute_filter_key, normalize_keyword
from .highlighting import excerpt_around_keyword, highlight_keyword, highlight_keywords_html
from .timestamps import ensure_utc, format_timestamp, parse_timestamp, utc_now

__all__ = [
    # Hashing
    "compute_filter_key",
    "normalize_keyword",
    # Timestamps
    "utc_now",
    "ensure_utc",
    "format_timestamp",
    "parse_timestamp",
    # Highlighting
    "highlight_keyword",
    "highlight_keywords_html",
    "excerpt_around_keyword",
]
