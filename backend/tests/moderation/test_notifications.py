"""Tests for moderation event dispatch."""

from app.core.logging import clear_correlation_id, set_correlation_id
from app.modules.moderation.notifications import (
    CeleryNotificationDispatcher,
    EventType,
    ModerationEvent,
    notify,
)
from tests.moderation.factories import RecordingDispatcher


class FakeCelery:
    def __init__(self):
        self.sent = []

    def send_task(self, name, kwargs=None):
        self.sent.append((name, kwargs))


def _event() -> ModerationEvent:
    return ModerationEvent(
        event_type=EventType.CONTENT_HIDDEN,
        content_type="reply",
        content_id="R1",
        actor_id="mod-1",
        reason="abusive",
        data={"previous_status": "pending"},
    )


def test_celery_dispatcher_sends_payload() -> None:
    celery = FakeCelery()
    set_correlation_id("req-123")
    try:
        CeleryNotificationDispatcher(celery, task_name="notifications.test").dispatch(_event())
    finally:
        clear_correlation_id()

    assert len(celery.sent) == 1
    name, payload = celery.sent[0]
    assert name == "notifications.test"
    assert payload["event_type"] == "content.hidden"
    assert payload["content_id"] == "R1"
    assert payload["data"] == {"previous_status": "pending"}
    assert payload["correlation_id"] == "req-123"


def test_notify_reports_delivery() -> None:
    dispatcher = RecordingDispatcher()
    assert notify(dispatcher, _event()) is True
    assert dispatcher.types() == [EventType.CONTENT_HIDDEN]


def test_notify_swallows_dispatch_failure() -> None:
    assert notify(RecordingDispatcher(fail=True), _event()) is False
