"""Thread pool that evaluates independent ad events in parallel."""

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Iterable, List

from adwatch.domain.models import AdEvent
from adwatch.logging import get_logger

from .coordinator import WatchdogCoordinator
from .models import AdEventResult, EventOutcome

logger = get_logger(__name__, component="workers")


class EventWorkerPool:
    """
    Runs ``WatchdogCoordinator.on_ad_event`` on a pool of worker threads.

    Events are independent units of work: each runs in its own sessions and
    its own logging context. Concurrent events for the same ad are safe
    because ledger writes are idempotent.

    Usable as a context manager; leaving the block waits for pending events.
    """

    def __init__(self, coordinator: WatchdogCoordinator, max_workers: int = 4):
        """
        Args:
            coordinator: Coordinator shared by every worker
            max_workers: Number of worker threads
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")

        self.coordinator = coordinator
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="adwatch-event"
        )

    def submit(self, event: AdEvent) -> "Future[AdEventResult]":
        """Queue one event; the future raises whatever on_ad_event raised."""
        return self._executor.submit(self.coordinator.on_ad_event, event)

    def process(self, events: Iterable[AdEvent]) -> List[EventOutcome]:
        """Process a batch of events and wait for all of them.

        A failing event never affects the others; its exception is captured
        in the corresponding outcome.

        Returns:
            One EventOutcome per event, in input order
        """
        submitted = [(event, self.submit(event)) for event in events]
        outcomes = []

        for event, future in submitted:
            try:
                outcomes.append(EventOutcome(event=event, result=future.result()))
            except Exception as e:
                logger.error(
                    f"Event {event.event_id} for ad {event.ad.id} failed: {e}",
                    exc_info=True,
                    extra={
                        "event": "watchdog.event.failure",
                        "event_id": event.event_id,
                        "ad_id": event.ad.id,
                        "error_type": type(e).__name__,
                    },
                )
                outcomes.append(EventOutcome(event=event, error=e))

        failed = sum(1 for outcome in outcomes if not outcome.succeeded)
        logger.info(
            f"Processed {len(outcomes)} event(s), {failed} with errors",
            extra={"event": "watchdog.batch.completed", "events": len(outcomes), "failed": failed},
        )
        return outcomes

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown(wait=True)
        return False
