"""Template context for watchdog alerts.

One alert covers every (criteria, ad) pair matched for an owner in one
event, grouped by ad.
"""

from typing import Dict, List, Sequence

from adwatch.domain.models import AdSnapshot
from adwatch.matching.engine import CriteriaMatcher
from adwatch.matching.models import CriteriaMatch
from adwatch.utils.highlighting import (
    excerpt_around_keyword,
    highlight_keyword,
    highlight_keywords_html,
)
from adwatch.utils.timestamps import utc_now

_matcher = CriteriaMatcher()


def format_price(price) -> str:
    """Render a price for humans.

    Example:
        >>> format_price(1500)
        '1,500.00'
        >>> format_price(None)
        'Price on request'
    """
    if price is None:
        return "Price on request"
    return f"{price:,.2f}"


def _criteria_context(match: CriteriaMatch) -> Dict:
    explanation = _matcher.explain(match.ad, match.criteria)
    return {
        "id": match.criteria.id,
        "keyword": match.criteria.keyword,
        "description": match.criteria.describe(),
        "matched_filters": explanation.matched_filters,
        "reason": explanation.reason,
    }


def _ad_context(ad: AdSnapshot, matches: List[CriteriaMatch]) -> Dict:
    keywords = [m.criteria.keyword for m in matches if m.criteria.keyword]
    first_keyword = keywords[0] if keywords else None
    excerpt = excerpt_around_keyword(ad.description or "", first_keyword)

    excerpt_text = excerpt
    for keyword in keywords:
        excerpt_text = highlight_keyword(excerpt_text, keyword)

    return {
        "id": ad.id,
        "title": ad.title,
        "title_html": highlight_keywords_html(ad.title, keywords),
        "price": ad.price,
        "price_display": format_price(ad.price),
        "category_id": ad.category_id,
        "excerpt": excerpt_text,
        "excerpt_html": highlight_keywords_html(excerpt, keywords),
        "keywords": keywords,
        "criteria": [_criteria_context(m) for m in matches],
    }


def build_dispatch_context(
    owner_id: str, matches: Sequence[CriteriaMatch], subject_prefix: str = ""
) -> Dict:
    """Build the template context for one owner's alert.

    Args:
        owner_id: Recipient user
        matches: Non-empty batch of the owner's matches
        subject_prefix: Prefix for the subject line

    Returns:
        Dictionary with template context keys:
        - owner_id, subject_prefix
        - ads: per-ad dicts (title, price_display, excerpt, excerpt_html,
          criteria descriptions), ordered by ad id
        - ad_count, match_count
        - generated_at: ISO formatted timestamp
    """
    by_ad: Dict[int, List[CriteriaMatch]] = {}
    snapshots: Dict[int, AdSnapshot] = {}
    for match in matches:
        by_ad.setdefault(match.ad.id, []).append(match)
        snapshots[match.ad.id] = match.ad

    ads = []
    for ad_id in sorted(by_ad):
        ad_matches = sorted(by_ad[ad_id], key=lambda m: (m.criteria.created_at, m.criteria.id))
        ads.append(_ad_context(snapshots[ad_id], ad_matches))

    return {
        "owner_id": owner_id,
        "subject_prefix": subject_prefix,
        "ads": ads,
        "ad_count": len(ads),
        "match_count": len(matches),
        "generated_at": utc_now().isoformat(),
    }
