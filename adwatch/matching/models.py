"""Data models for the matching engine."""

from dataclasses import dataclass, field
from typing import List

from adwatch.domain.models import AdSnapshot, WatchCriteria


@dataclass
class MatchResult:
    """Outcome of evaluating one ad against one criterion.

    Attributes:
        criteria: The criterion evaluated
        is_match: True if every filter the criterion sets holds
        matched_filters: Names of filters that were set and held
        failed_filters: Names of filters that were set and did not hold
    """

    criteria: WatchCriteria
    is_match: bool
    matched_filters: List[str] = field(default_factory=list)
    failed_filters: List[str] = field(default_factory=list)

    @property
    def reason(self) -> str:
        """One-line explanation suitable for logs and emails."""
        if not self.matched_filters and not self.failed_filters:
            return "no filters set (matches every listing)"
        if self.is_match:
            return "matched " + ", ".join(self.matched_filters)
        return "failed " + ", ".join(self.failed_filters)


@dataclass(frozen=True)
class CriteriaMatch:
    """A criterion paired with the ad it matched, ready for notification."""

    criteria: WatchCriteria
    ad: AdSnapshot

    @property
    def owner_id(self) -> str:
        """Owner to notify."""
        return self.criteria.owner_id

    @property
    def key(self) -> tuple:
        """Ledger key of this pairing."""
        return (self.criteria.id, self.ad.id)
