"""Keyword highlighting for alert emails.

Helps the recipient see why a listing matched their watchdog. Matching is a
plain case-insensitive substring test, so highlighting follows the same rule
(no word boundaries).
"""

import re
from typing import Iterable, Optional

from markupsafe import Markup, escape


def highlight_keyword(
    text: str, keyword: Optional[str], marker_start: str = "**", marker_end: str = "**"
) -> str:
    """Wrap every case-insensitive occurrence of ``keyword`` in markers.

    The original casing of the text is preserved.

    Example:
        >>> highlight_keyword("Mountain Bike, barely used", "bike")
        'Mountain **Bike**, barely used'
    """
    if not text or not keyword or not keyword.strip():
        return text

    pattern = re.compile(re.escape(keyword.strip()), re.IGNORECASE)
    return pattern.sub(lambda m: f"{marker_start}{m.group(0)}{marker_end}", text)


def excerpt_around_keyword(text: str, keyword: Optional[str], context_chars: int = 80) -> str:
    """Return a short excerpt of ``text`` centred on the first keyword hit.

    Falls back to the head of the text when there is no keyword or no hit.
    Ellipses mark truncated ends.

    Args:
        text: Text to excerpt (typically the ad description)
        keyword: Keyword to centre on
        context_chars: Characters of context on each side of the hit

    Example:
        >>> excerpt_around_keyword("Selling my old bike because I moved", "bike", context_chars=8)
        '...my old bike because...'
    """
    if not text:
        return ""

    pos = -1
    length = 0
    if keyword and keyword.strip():
        needle = keyword.strip().lower()
        pos = text.lower().find(needle)
        length = len(needle)

    if pos == -1:
        if len(text) <= context_chars * 2:
            return text.strip()
        return text[: context_chars * 2].rstrip() + "..."

    start = max(0, pos - context_chars)
    end = min(len(text), pos + length + context_chars)
    excerpt = text[start:end].strip()

    if start > 0:
        excerpt = "..." + excerpt
    if end < len(text):
        excerpt = excerpt + "..."

    return excerpt


def highlight_keywords_html(text: str, keywords: Iterable[str], tag: str = "mark") -> Markup:
    """HTML-escape ``text`` and wrap keyword hits in ``<tag>`` elements.

    Several keywords are matched in one pass, longest first, so overlapping
    keywords never produce nested or broken markup.

    Example:
        >>> str(highlight_keywords_html("Bike & helmet", ["bike"]))
        '<mark>Bike</mark> &amp; helmet'
    """
    if not text:
        return Markup("")

    needles = sorted({k.strip() for k in keywords if k and k.strip()}, key=len, reverse=True)
    if not needles:
        return escape(text)

    pattern = re.compile("|".join(re.escape(n) for n in needles), re.IGNORECASE)
    open_tag = Markup(f"<{tag}>")
    close_tag = Markup(f"</{tag}>")

    parts = []
    last = 0
    for m in pattern.finditer(text):
        parts.append(escape(text[last : m.start()]))
        parts.append(open_tag + escape(m.group(0)) + close_tag)
        last = m.end()
    parts.append(escape(text[last:]))

    return Markup("").join(parts)
