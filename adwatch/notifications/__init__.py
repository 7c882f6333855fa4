"""Alert delivery for watchdog matches.

- NotificationDispatcher: one templated alert per owner per event, with retry
- MailTransport / SMTPMailTransport: delivery to a user's address
- TemplateRenderer: Jinja2-based subject and body rendering
"""

from .dispatcher import NotificationDispatcher
from .models import (
    DispatchError,
    DispatchResult,
    NotificationError,
    NotificationTemplateError,
    RecipientUnavailableError,
)
from .payloads import build_dispatch_context, format_price
from .smtp_client import SMTPMailTransport, build_sender_address
from .templates import TemplateRenderer
from .transport import MailTransport

__all__ = [
    # Main service
    "NotificationDispatcher",
    "DispatchResult",
    # Exceptions
    "NotificationError",
    "NotificationTemplateError",
    "DispatchError",
    "RecipientUnavailableError",
    # Components
    "MailTransport",
    "SMTPMailTransport",
    "TemplateRenderer",
    # Utilities
    "build_dispatch_context",
    "build_sender_address",
    "format_price",
]
