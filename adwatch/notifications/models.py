"""Data models and exceptions for alert dispatch."""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple


class NotificationError(Exception):
    """Base exception for notification-related errors."""

    pass


class NotificationTemplateError(NotificationError):
    """Raised when template rendering fails due to configuration or missing variables."""

    pass


class DispatchError(NotificationError):
    """The alert was not accepted for delivery.

    Attributes:
        owner_id: Recipient user, when known
        attempts: Delivery attempts made before giving up
        retryable: False when retrying cannot help (e.g. no address on file)
    """

    retryable = True

    def __init__(self, message: str, owner_id: Optional[str] = None, attempts: int = 0):
        super().__init__(message)
        self.owner_id = owner_id
        self.attempts = attempts


class RecipientUnavailableError(DispatchError):
    """The recipient is unknown to the user directory or has no email address."""

    retryable = False


@dataclass
class DispatchResult:
    """Result of dispatching one owner's alert for one event.

    Attributes:
        owner_id: Recipient user
        pairs: (criteria_id, ad_id) pairs covered by the message
        attempts: Number of send attempts made
        status: "sent" or "skipped" (empty batch)
    """

    owner_id: str
    pairs: List[Tuple[str, int]] = field(default_factory=list)
    attempts: int = 0
    status: str = "skipped"

    def is_success(self) -> bool:
        """True if a message was accepted by the transport."""
        return self.status == "sent"
