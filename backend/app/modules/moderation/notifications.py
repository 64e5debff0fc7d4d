"""Moderation events handed to the notification workers.

The engine only emits events; delivery (email, push) happens in the
worker that consumes the Celery task. A failed hand-off is logged and
never fails the moderation call that produced it.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

from app.core.config import settings
from app.core.logging import get_correlation_id, log_error

logger = logging.getLogger(__name__)


class EventType:
    REPORT_FILED = "report.filed"
    REPORT_RESOLVED = "report.resolved"
    CONTENT_APPROVED = "content.approved"
    CONTENT_REJECTED = "content.rejected"
    CONTENT_HIDDEN = "content.hidden"
    CONTENT_DELETED = "content.deleted"
    CONTENT_AUTO_HIDDEN = "content.auto_hidden"


@dataclass
class ModerationEvent:
    """One event emitted by the engine."""
    event_type: str
    content_type: str
    content_id: str
    actor_id: str
    reason: Optional[str] = None
    data: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_payload(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type,
            "content_type": self.content_type,
            "content_id": self.content_id,
            "actor_id": self.actor_id,
            "reason": self.reason,
            "data": self.data,
            "occurred_at": self.occurred_at.isoformat(),
            "correlation_id": get_correlation_id(),
        }


class NotificationDispatcher(Protocol):
    """Sink for moderation events."""

    def dispatch(self, event: ModerationEvent) -> None: ...


class CeleryNotificationDispatcher:
    """Send events as Celery tasks to the notification queue."""

    def __init__(self, celery_app=None, task_name: Optional[str] = None):
        if celery_app is None:
            from app.core.celery_app import celery_app as default_app
            celery_app = default_app
        self.celery_app = celery_app
        self.task_name = task_name or settings.NOTIFICATION_TASK_NAME

    def dispatch(self, event: ModerationEvent) -> None:
        self.celery_app.send_task(self.task_name, kwargs=event.to_payload())


def notify(dispatcher: NotificationDispatcher, event: ModerationEvent) -> bool:
    """Dispatch an event, logging instead of raising on failure.

    Returns:
        True if the dispatcher accepted the event
    """
    try:
        dispatcher.dispatch(event)
    except Exception as e:
        log_error(
            logger,
            "Failed to dispatch moderation event",
            e,
            event_type=event.event_type,
            content_ref=f"{event.content_type}:{event.content_id}",
        )
        return False
    return True
