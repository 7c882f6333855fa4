"""Alert dispatch: one message per owner per ad event.

The dispatcher renders the alert, hands it to the MailTransport and retries
transport rejections with exponential backoff. It never touches the ledger;
the coordinator records pairs only after ``dispatch`` returns successfully.
"""

import logging
import time
from typing import Optional, Sequence

from adwatch.config.models import EmailConfig
from adwatch.logging import get_logger
from adwatch.logging.context import log_context
from adwatch.matching.models import CriteriaMatch

from .models import DispatchError, DispatchResult, NotificationTemplateError
from .payloads import build_dispatch_context
from .templates import TemplateRenderer
from .transport import MailTransport

logger = get_logger(__name__, component="notification")

MAX_RETRY_DELAY = 60.0


class NotificationDispatcher:
    """Sends one owner's batch of matches as a single alert.

    Flow:
    1. Build the template context for the batch
    2. Render subject, HTML and plain-text bodies
    3. Deliver via the transport with retry/backoff
    """

    def __init__(
        self,
        transport: MailTransport,
        email_config: Optional[EmailConfig] = None,
        template_renderer: Optional[TemplateRenderer] = None,
        logger_instance: Optional[logging.Logger] = None,
    ):
        """
        Args:
            transport: Mail transport that performs delivery
            email_config: Retry settings and subject prefix (defaults if None)
            template_renderer: Template renderer instance (creates default if None)
            logger_instance: Logger instance (uses module logger if None)
        """
        self.transport = transport
        self.email_config = email_config or EmailConfig()
        self.template_renderer = template_renderer or TemplateRenderer()
        self.logger = logger_instance or logger

    def dispatch(self, owner_id: str, matches: Sequence[CriteriaMatch]) -> DispatchResult:
        """Send one alert covering every match of ``owner_id``.

        An empty batch is a no-op and reports status "skipped".

        Args:
            owner_id: Recipient; every match must belong to this owner
            matches: The owner's matches for one event

        Returns:
            DispatchResult with status "sent" once the transport accepted the message

        Raises:
            ValueError: If a match belongs to another owner
            DispatchError: If rendering failed or delivery was rejected after all retries
        """
        matches = list(matches)
        if not matches:
            return DispatchResult(owner_id=owner_id)

        foreign = [m for m in matches if m.owner_id != owner_id]
        if foreign:
            raise ValueError(
                f"Cannot dispatch matches of owner {foreign[0].owner_id} to owner {owner_id}"
            )

        pairs = sorted({m.key for m in matches})

        with log_context(owner_id=owner_id):
            try:
                context = build_dispatch_context(
                    owner_id, matches, subject_prefix=self.email_config.subject_prefix
                )
                rendered = self.template_renderer.render(context)
            except NotificationTemplateError as e:
                self.logger.error(
                    f"Alert rendering failed for owner {owner_id}: {e}",
                    extra={"event": "notification.render.failure"},
                )
                raise DispatchError(
                    f"Alert rendering failed: {e}", owner_id=owner_id, attempts=0
                ) from e

            attempts = self._send_with_retry(owner_id, rendered, len(pairs))

            return DispatchResult(owner_id=owner_id, pairs=pairs, attempts=attempts, status="sent")

    def _send_with_retry(self, owner_id: str, rendered: dict, pair_count: int) -> int:
        """Deliver ``rendered`` and return the number of attempts used.

        Raises:
            DispatchError: Last transport error, with ``attempts`` filled in
        """
        config = self.email_config
        max_attempts = config.max_retries + 1

        for attempt in range(1, max_attempts + 1):
            if attempt > 1:
                delay = config.retry_initial_delay * (
                    config.retry_backoff_multiplier ** (attempt - 2)
                )
                delay = min(delay, MAX_RETRY_DELAY)
                self.logger.warning(
                    f"Retrying alert for owner {owner_id} (attempt {attempt}/{max_attempts}) "
                    f"after {delay:.1f}s delay",
                    extra={"event": "notification.send.attempt", "attempt": attempt},
                )
                time.sleep(delay)

            try:
                self.transport.send(
                    owner_id,
                    rendered["subject"],
                    rendered["text_body"],
                    html_body=rendered["html_body"],
                )
            except DispatchError as e:
                retry_remaining = e.retryable and attempt < max_attempts
                if retry_remaining:
                    self.logger.warning(
                        f"Alert delivery failed for owner {owner_id} "
                        f"(attempt {attempt}/{max_attempts}): {e}",
                        extra={
                            "event": "notification.send.failure",
                            "attempt": attempt,
                            "error_type": type(e).__name__,
                            "retry_remaining": True,
                        },
                    )
                    continue

                self.logger.error(
                    f"Alert delivery failed for owner {owner_id} after {attempt} attempt(s): {e}",
                    extra={
                        "event": "notification.send.failure",
                        "attempt": attempt,
                        "error_type": type(e).__name__,
                        "retry_remaining": False,
                    },
                )
                e.owner_id = e.owner_id or owner_id
                e.attempts = attempt
                raise

            self.logger.info(
                f"Alert sent to owner {owner_id} covering {pair_count} match(es) "
                f"(attempts: {attempt})",
                extra={
                    "event": "notification.send.success",
                    "attempt": attempt,
                    "match_count": pair_count,
                },
            )
            return attempt

        # max_attempts >= 1, so the loop always returns or raises
        raise DispatchError("No delivery attempt was made", owner_id=owner_id)
