"""Domain models for the ad watchdog."""

from .models import (
    AdEvent,
    AdEventKind,
    AdSnapshot,
    CriteriaProposal,
    NotificationRecord,
    WatchCriteria,
)

__all__ = [
    "AdEvent",
    "AdEventKind",
    "AdSnapshot",
    "CriteriaProposal",
    "NotificationRecord",
    "WatchCriteria",
]
