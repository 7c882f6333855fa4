"""Tests for the event worker pool."""

import threading
from unittest.mock import Mock

import pytest

from adwatch.config.models import WatchdogConfig
from adwatch.domain.models import AdEventKind
from adwatch.persistence import NotificationLedger, PersistenceError, get_session
from adwatch.watchdog import AdEventResult, EventWorkerPool, WatchdogCoordinator

from tests.helpers import make_event


@pytest.fixture
def threaded_coordinator(file_database, user_directory, dispatcher):
    return WatchdogCoordinator(
        user_directory=user_directory, dispatcher=dispatcher, config=WatchdogConfig()
    )


def result_for(event):
    return AdEventResult(event_id=event.event_id, ad_id=event.ad.id, kind=event.kind.value)


def test_rejects_invalid_worker_count():
    with pytest.raises(ValueError, match="max_workers"):
        EventWorkerPool(Mock(), max_workers=0)


def test_outcomes_follow_input_order():
    coordinator = Mock()
    coordinator.on_ad_event.side_effect = result_for
    events = [make_event(id=i) for i in range(10)]

    with EventWorkerPool(coordinator, max_workers=4) as pool:
        outcomes = pool.process(events)

    assert [o.event.ad.id for o in outcomes] == list(range(10))
    assert [o.result.ad_id for o in outcomes] == list(range(10))
    assert all(o.succeeded for o in outcomes)


def test_failing_event_does_not_affect_others():
    def on_ad_event(event):
        if event.ad.id == 2:
            raise PersistenceError("store offline")
        return result_for(event)

    coordinator = Mock()
    coordinator.on_ad_event.side_effect = on_ad_event

    with EventWorkerPool(coordinator, max_workers=2) as pool:
        outcomes = pool.process([make_event(id=i) for i in (1, 2, 3)])

    assert [o.succeeded for o in outcomes] == [True, False, True]
    assert isinstance(outcomes[1].error, PersistenceError)
    assert outcomes[1].result is None


def test_events_with_collaborator_errors_are_not_successes():
    def on_ad_event(event):
        result = result_for(event)
        result.failed_owners.append("U")
        return result

    coordinator = Mock()
    coordinator.on_ad_event.side_effect = on_ad_event

    with EventWorkerPool(coordinator, max_workers=1) as pool:
        (outcome,) = pool.process([make_event()])

    assert outcome.error is None
    assert not outcome.succeeded


def test_events_run_on_worker_threads():
    thread_names = []

    def on_ad_event(event):
        thread_names.append(threading.current_thread().name)
        return result_for(event)

    coordinator = Mock()
    coordinator.on_ad_event.side_effect = on_ad_event

    with EventWorkerPool(coordinator, max_workers=2) as pool:
        pool.process([make_event(id=1), make_event(id=2)])

    assert all(name.startswith("adwatch-event") for name in thread_names)


def test_parallel_events_for_different_ads(threaded_coordinator, transport):
    threaded_coordinator.register_criteria("U", {"keyword": "bike"})
    threaded_coordinator.register_criteria("W", {"category_id": 3})
    events = [make_event(id=i, title=f"Bike {i}") for i in range(1, 9)]

    with EventWorkerPool(threaded_coordinator, max_workers=4) as pool:
        outcomes = pool.process(events)

    assert all(o.succeeded for o in outcomes)
    assert len(transport.sent_to("U")) == 8
    assert len(transport.sent_to("W")) == 8


def test_concurrent_events_for_same_ad_record_each_pair_once(threaded_coordinator, transport):
    criteria = threaded_coordinator.register_criteria("U", {"keyword": "bike"})
    events = [make_event(kind=AdEventKind.CREATED)] + [
        make_event(kind=AdEventKind.UPDATED) for _ in range(5)
    ]

    with EventWorkerPool(threaded_coordinator, max_workers=6) as pool:
        outcomes = pool.process(events)

    assert all(o.succeeded for o in outcomes)
    assert len(transport.sent_to("U")) >= 1

    with get_session() as session:
        records = NotificationLedger(session).records_for_ad(42)
    assert [r.criteria_id for r in records] == [criteria.id]

    # Once recorded, later events stay silent
    sent_before = len(transport.sent)
    threaded_coordinator.on_ad_event(make_event(kind=AdEventKind.UPDATED))
    assert len(transport.sent) == sent_before
