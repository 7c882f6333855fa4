"""Criteria matching engine for evaluating ads against stored watchdogs.

This module provides:
- CriteriaMatcher: pure evaluation of one ad against many criteria
- MatchResult: per-filter explanation of one evaluation
- CriteriaMatch: a (criteria, ad) pairing that survived matching
"""

from .engine import CriteriaMatcher
from .models import CriteriaMatch, MatchResult

__all__ = ["CriteriaMatcher", "CriteriaMatch", "MatchResult"]
