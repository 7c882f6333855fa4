"""Watchdog registration and ad event evaluation."""

from .coordinator import WatchdogCoordinator
from .exceptions import (
    CriteriaNotFoundError,
    CriteriaValidationError,
    DuplicateCriteriaError,
    NotAuthorizedError,
    WatchdogError,
)
from .models import AdEventResult, EventOutcome
from .responses import error_response, registration_response
from .workers import EventWorkerPool

__all__ = [
    "WatchdogCoordinator",
    "EventWorkerPool",
    "AdEventResult",
    "EventOutcome",
    "registration_response",
    "error_response",
    # Exceptions
    "WatchdogError",
    "NotAuthorizedError",
    "DuplicateCriteriaError",
    "CriteriaValidationError",
    "CriteriaNotFoundError",
]
