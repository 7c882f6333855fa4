"""Result types for ad event processing."""

from dataclasses import dataclass, field
from typing import List, Optional

from adwatch.domain.models import AdEvent


@dataclass
class AdEventResult:
    """
    Outcome of evaluating one ad event.

    Attributes:
        event_id: Identifier of the processed event
        ad_id: Ad the event referred to
        kind: "created" or "updated"
        candidates: Active criteria loaded by the category pre-filter
        skipped_inactive: Criteria skipped because their owner lost the elevated role
        deactivated: Criteria flagged inactive as a result
        directory_unavailable: Criteria skipped because the user directory failed
        matched: Criteria the ad satisfied
        duplicates_suppressed: Matches already present in the ledger
        ledger_unavailable: Matches skipped because the ledger could not answer
        notified_owners: Owners whose alert was accepted and recorded
        failed_owners: Owners whose alert was rejected
        unrecorded_pairs: Pairs delivered but not written to the ledger
        duration_seconds: Wall time spent on the event
    """

    event_id: str
    ad_id: int
    kind: str
    candidates: int = 0
    skipped_inactive: int = 0
    deactivated: int = 0
    directory_unavailable: int = 0
    matched: int = 0
    duplicates_suppressed: int = 0
    ledger_unavailable: int = 0
    notified_owners: List[str] = field(default_factory=list)
    failed_owners: List[str] = field(default_factory=list)
    unrecorded_pairs: int = 0
    duration_seconds: float = 0.0

    @property
    def had_errors(self) -> bool:
        """True if any collaborator failed while processing the event."""
        return bool(
            self.failed_owners
            or self.ledger_unavailable
            or self.directory_unavailable
            or self.unrecorded_pairs
        )

    @property
    def notifications_sent(self) -> int:
        return len(self.notified_owners)


@dataclass
class EventOutcome:
    """An event handed to the worker pool and what became of it.

    Exactly one of ``result`` and ``error`` is set.
    """

    event: AdEvent
    result: Optional[AdEventResult] = None
    error: Optional[BaseException] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.result is not None and not self.result.had_errors
