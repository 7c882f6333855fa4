"""Tests for the notification dispatcher (one alert per owner per event)."""

from unittest.mock import Mock, call, patch

import pytest

from adwatch.config.models import EmailConfig
from adwatch.domain.models import WatchCriteria
from adwatch.matching.models import CriteriaMatch
from adwatch.notifications import (
    DispatchError,
    NotificationDispatcher,
    NotificationTemplateError,
    RecipientUnavailableError,
)

from tests.helpers import RecordingMailTransport, make_ad


@pytest.fixture
def matches():
    ad = make_ad()
    return [
        CriteriaMatch(WatchCriteria(owner_id="U", keyword="bike"), ad),
        CriteriaMatch(WatchCriteria(owner_id="U", category_id=3), ad),
    ]


def test_empty_batch_is_skipped(dispatcher, transport):
    result = dispatcher.dispatch("U", [])

    assert result.status == "skipped"
    assert not result.is_success()
    assert transport.attempts == 0


def test_dispatch_sends_one_message_for_all_matches(dispatcher, transport, matches):
    result = dispatcher.dispatch("U", matches)

    assert result.is_success()
    assert result.attempts == 1
    assert result.pairs == sorted(m.key for m in matches)
    assert len(transport.sent) == 1

    message = transport.sent[0]
    assert message.to_user_id == "U"
    assert message.subject == "[FoxBuy Watchdog] New listing for your watchdog: Mountain Bike"
    assert "'bike'" in message.body
    assert "category 3" in message.body
    assert "<mark>Bike</mark>" in message.html_body


def test_dispatch_rejects_foreign_matches(dispatcher, transport, matches):
    with pytest.raises(ValueError, match="owner U to owner W"):
        dispatcher.dispatch("W", matches)

    assert transport.attempts == 0


def test_retry_then_success(dispatcher, transport, matches):
    transport.fail_next = 2

    result = dispatcher.dispatch("U", matches)

    assert result.is_success()
    assert result.attempts == 3
    assert transport.attempts == 3
    assert len(transport.sent) == 1


def test_retries_exhausted(dispatcher, transport, matches):
    transport.reject_users.add("U")

    with pytest.raises(DispatchError) as exc_info:
        dispatcher.dispatch("U", matches)

    # max_retries=2 in the email_config fixture
    assert exc_info.value.attempts == 3
    assert exc_info.value.owner_id == "U"
    assert transport.attempts == 3
    assert transport.sent == []


def test_non_retryable_error_is_not_retried(dispatcher, transport, matches):
    transport.unreachable_users.add("U")

    with pytest.raises(RecipientUnavailableError) as exc_info:
        dispatcher.dispatch("U", matches)

    assert exc_info.value.attempts == 1
    assert transport.attempts == 1


def test_no_retries_configured(transport, matches):
    dispatcher = NotificationDispatcher(
        transport=transport, email_config=EmailConfig(max_retries=0)
    )
    transport.fail_next = 1

    with patch("adwatch.notifications.dispatcher.time.sleep") as mock_sleep:
        with pytest.raises(DispatchError):
            dispatcher.dispatch("U", matches)

    mock_sleep.assert_not_called()
    assert transport.attempts == 1


def test_exponential_backoff_delays(transport, matches):
    config = EmailConfig(max_retries=3, retry_initial_delay=1, retry_backoff_multiplier=2.0)
    dispatcher = NotificationDispatcher(transport=transport, email_config=config)
    transport.fail_next = 3

    with patch("adwatch.notifications.dispatcher.time.sleep") as mock_sleep:
        result = dispatcher.dispatch("U", matches)

    assert result.attempts == 4
    assert mock_sleep.call_args_list == [call(1.0), call(2.0), call(4.0)]


def test_backoff_delay_is_capped(transport, matches):
    config = EmailConfig(max_retries=2, retry_initial_delay=40, retry_backoff_multiplier=2.0)
    dispatcher = NotificationDispatcher(transport=transport, email_config=config)
    transport.fail_next = 2

    with patch("adwatch.notifications.dispatcher.time.sleep") as mock_sleep:
        dispatcher.dispatch("U", matches)

    assert mock_sleep.call_args_list == [call(40.0), call(60.0)]


def test_template_error_becomes_dispatch_error(transport, email_config, matches):
    renderer = Mock()
    renderer.render.side_effect = NotificationTemplateError("missing variable")
    dispatcher = NotificationDispatcher(
        transport=transport, email_config=email_config, template_renderer=renderer
    )

    with pytest.raises(DispatchError, match="rendering failed") as exc_info:
        dispatcher.dispatch("U", matches)

    assert exc_info.value.attempts == 0
    assert transport.attempts == 0


def test_subject_prefix_from_config(matches):
    transport = RecordingMailTransport()
    dispatcher = NotificationDispatcher(
        transport=transport, email_config=EmailConfig(subject_prefix="[Alert]")
    )

    dispatcher.dispatch("U", matches)

    assert transport.sent[0].subject.startswith("[Alert] New listing")


def test_dispatch_logs_success(dispatcher, matches, caplog):
    with caplog.at_level("INFO", logger="adwatch.notifications.dispatcher"):
        dispatcher.dispatch("U", matches)

    records = [r for r in caplog.records if getattr(r, "event", None) == "notification.send.success"]
    assert len(records) == 1
    assert records[0].match_count == 2
    assert records[0].component == "notification"
