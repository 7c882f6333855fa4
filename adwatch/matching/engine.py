"""Criteria matching engine.

Evaluation is a pure function of the ad snapshot and the criteria passed in:
no I/O, no logging, no state between calls. A criterion matches when all the
filters it sets hold:

1. keyword: case-insensitive substring of title + description
2. category: equal to the ad's category
3. price: price_min <= price <= price_max, inclusive, each bound optional

An ad without a price never satisfies a criterion that sets a price bound.
"""

from typing import Iterable, List, Set

from adwatch.domain.models import AdSnapshot, WatchCriteria

from .models import MatchResult


class CriteriaMatcher:
    """Evaluates ads against watch criteria."""

    def evaluate(self, ad: AdSnapshot, criteria: Iterable[WatchCriteria]) -> Set[WatchCriteria]:
        """Return the subset of ``criteria`` that ``ad`` satisfies.

        Args:
            ad: Ad snapshot to test
            criteria: Candidate criteria (may be empty)

        Returns:
            Set of matching criteria; empty when none match or none were given
        """
        haystack = self._searchable_text(ad)
        return {
            criterion
            for criterion in criteria
            if self._matches(ad, haystack, criterion)
        }

    def explain(self, ad: AdSnapshot, criteria: WatchCriteria) -> MatchResult:
        """Evaluate one criterion and report which filters held.

        Agrees with evaluate(): ``explain(ad, c).is_match`` is True exactly
        when ``c in evaluate(ad, [c])``.
        """
        haystack = self._searchable_text(ad)
        matched: List[str] = []
        failed: List[str] = []

        for name, is_set, holds in self._filter_checks(ad, haystack, criteria):
            if not is_set:
                continue
            (matched if holds else failed).append(name)

        return MatchResult(
            criteria=criteria,
            is_match=not failed,
            matched_filters=matched,
            failed_filters=failed,
        )

    def _matches(self, ad: AdSnapshot, haystack: str, criteria: WatchCriteria) -> bool:
        return all(
            holds for _, is_set, holds in self._filter_checks(ad, haystack, criteria) if is_set
        )

    @staticmethod
    def _searchable_text(ad: AdSnapshot) -> str:
        return ad.searchable_text.lower()

    @staticmethod
    def _filter_checks(ad: AdSnapshot, haystack: str, criteria: WatchCriteria):
        """Yield (filter name, is set, holds) for each filter in order."""
        keyword = (criteria.keyword or "").strip().lower()
        yield "keyword", bool(keyword), bool(keyword) and keyword in haystack

        category_set = criteria.category_id is not None
        yield "category", category_set, category_set and ad.category_id == criteria.category_id

        min_set = criteria.price_min is not None
        yield "price_min", min_set, min_set and ad.price is not None and criteria.price_min <= ad.price

        max_set = criteria.price_max is not None
        yield "price_max", max_set, max_set and ad.price is not None and ad.price <= criteria.price_max
