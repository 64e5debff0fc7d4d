"""Append-only moderation audit log.

By the time an entry is written the status change it describes has
already happened, so a failed write is retried with backoff and, if it
still fails, surfaced as ``AuditWriteFailed`` instead of being dropped.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from app.core.config import settings
from app.core.logging import log_error, log_warning
from app.core.metrics import AUDIT_WRITE_RETRIES_TOTAL
from app.core.retry import RetryConfig, RetryExhausted, retry_async
from app.modules.moderation.exceptions import AuditWriteFailed, StorageUnavailable
from app.modules.moderation.models import (
    AuditAction,
    ContentRef,
    ContentStatus,
    ModerationAuditEntry,
)
from app.modules.moderation.repository import AuditStore

logger = logging.getLogger(__name__)


def default_retry_config() -> RetryConfig:
    return RetryConfig(
        max_attempts=settings.AUDIT_WRITE_MAX_ATTEMPTS,
        initial_delay=settings.AUDIT_WRITE_INITIAL_DELAY_SECONDS,
        max_delay=settings.AUDIT_WRITE_MAX_DELAY_SECONDS,
    )


def build_entry(
    ref: ContentRef,
    action: AuditAction,
    actor_id: str,
    reason: Optional[str],
    previous_status: Optional[ContentStatus],
    new_status: Optional[ContentStatus],
) -> ModerationAuditEntry:
    return ModerationAuditEntry(
        content_type=ref.content_type.value,
        content_id=ref.content_id,
        action=action.value,
        actor_id=actor_id,
        reason=reason,
        previous_status=previous_status.value if previous_status else None,
        new_status=new_status.value if new_status else None,
        created_at=datetime.now(timezone.utc),
    )


class AuditLog:
    """Record and read moderation decisions."""

    def __init__(self, store: AuditStore, retry_config: Optional[RetryConfig] = None):
        self.store = store
        self.retry_config = retry_config or default_retry_config()

    async def record(self, entry: ModerationAuditEntry) -> ModerationAuditEntry:
        """Append an entry, retrying storage failures.

        Args:
            entry: The entry to append

        Returns:
            The stored entry

        Raises:
            AuditWriteFailed: If every attempt failed
        """
        content_ref = f"{entry.content_type}:{entry.content_id}"

        def on_retry(attempt: int, error: BaseException) -> None:
            AUDIT_WRITE_RETRIES_TOTAL.inc()
            log_warning(
                logger,
                "Audit write failed, retrying",
                content_ref=content_ref,
                attempt=attempt,
                error=str(error),
            )

        try:
            return await retry_async(
                lambda: self.store.append(entry),
                self.retry_config,
                retry_on=(StorageUnavailable,),
                on_retry=on_retry,
            )
        except RetryExhausted as e:
            log_error(
                logger,
                "Audit write failed after retries; status change has no audit entry",
                e.last_error,
                content_ref=content_ref,
                action=entry.action,
                actor_id=entry.actor_id,
                attempts=e.attempts,
            )
            raise AuditWriteFailed(
                f"Could not record audit entry for {content_ref}",
                content_ref=content_ref,
            ) from e.last_error

    async def history(self, ref: ContentRef) -> list[ModerationAuditEntry]:
        """Entries for one item, oldest first."""
        return await self.store.history(ref)
