"""Moderation action processor.

Applies approve / reject / hide / delete to one content item or to a
batch of items. Every applied action goes through the same steps:

1. plan the transition against the status machine
2. compare-and-set the new status (a lost race is a ``Conflict``)
3. append exactly one audit entry
4. resolve the item's pending reports
5. emit a notification event

Bulk calls are best effort: each item runs in its own savepoint and a
failure is collected into the result instead of aborting the batch.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from app.core.config import settings
from app.core.logging import log_error, log_info
from app.core.metrics import record_action
from app.core.tracing import create_span, record_exception
from app.modules.auth.actor import Actor, Authorizer
from app.modules.moderation.access import ensure_moderator
from app.modules.moderation.audit import AuditLog, build_entry
from app.modules.moderation.content_source import ContentSource, track_content
from app.modules.moderation.exceptions import (
    Conflict,
    ModerationError,
    ValidationFailed,
)
from app.modules.moderation.models import (
    AuditAction,
    ContentRef,
    ContentStatus,
    ContentType,
    ModerationActionType,
    ModerationAuditEntry,
    ReportResolution,
)
from app.modules.moderation.notifications import (
    EventType,
    ModerationEvent,
    NotificationDispatcher,
    notify,
)
from app.modules.moderation.rate_limiter import RateLimiter, moderation_policy
from app.modules.moderation.repository import ContentStore, ReportStore
from app.modules.moderation.state_machine import plan_transition

logger = logging.getLogger(__name__)

CANCELLED = "cancelled"
INTERNAL_ERROR = "internal_error"

ACTION_EVENTS: dict[ModerationActionType, str] = {
    ModerationActionType.APPROVE: EventType.CONTENT_APPROVED,
    ModerationActionType.REJECT: EventType.CONTENT_REJECTED,
    ModerationActionType.HIDE: EventType.CONTENT_HIDDEN,
    ModerationActionType.DELETE: EventType.CONTENT_DELETED,
}

# Approving means the reports were unfounded; every other decision upholds them.
ACTION_RESOLUTIONS: dict[ModerationActionType, ReportResolution] = {
    ModerationActionType.APPROVE: ReportResolution.NO_ACTION,
    ModerationActionType.REJECT: ReportResolution.VIOLATION,
    ModerationActionType.HIDE: ReportResolution.VIOLATION,
    ModerationActionType.DELETE: ReportResolution.VIOLATION,
}

ACTION_PAST_TENSE: dict[ModerationActionType, str] = {
    ModerationActionType.APPROVE: "approved",
    ModerationActionType.REJECT: "rejected",
    ModerationActionType.HIDE: "hidden",
    ModerationActionType.DELETE: "deleted",
}

for _table in (ACTION_EVENTS, ACTION_RESOLUTIONS, ACTION_PAST_TENSE):
    if set(_table) != set(ModerationActionType):
        raise RuntimeError("Moderation action table is incomplete")


@dataclass(frozen=True)
class ModerationAction:
    """A moderator's decision on one content item."""
    ref: ContentRef
    action: ModerationActionType
    actor: Actor
    reason: Optional[str] = None


@dataclass
class ModerationResult:
    """Outcome of one applied action."""
    success: bool
    message: str
    ref: ContentRef
    previous_status: ContentStatus
    status: ContentStatus
    changed: bool
    resolved_reports: int = 0
    audit_entry: Optional[ModerationAuditEntry] = None


@dataclass
class BulkItemFailure:
    content_id: str
    error: str
    message: str


@dataclass
class BulkItemOutcome:
    """Per-item line of a bulk result."""
    content_id: str
    success: bool
    changed: bool = False
    previous_status: Optional[ContentStatus] = None
    status: Optional[ContentStatus] = None
    error: Optional[str] = None
    message: Optional[str] = None


@dataclass
class BulkModerationResult:
    """Aggregate of a bulk call: success count plus every per-item outcome."""
    content_type: ContentType
    action: ModerationActionType
    affected_count: int = 0
    failures: list[BulkItemFailure] = field(default_factory=list)
    outcomes: list[BulkItemOutcome] = field(default_factory=list)

    @property
    def requested_count(self) -> int:
        return len(self.outcomes)

    @property
    def message(self) -> str:
        verb = ACTION_PAST_TENSE[self.action]
        message = f"{self.affected_count} of {self.requested_count} items {verb}"
        if self.failures:
            message += f", {len(self.failures)} failed"
        return message


def dedupe_ids(content_ids: list[str]) -> list[str]:
    """Drop repeated ids, keeping first-seen order."""
    seen: set[str] = set()
    unique = []
    for content_id in content_ids:
        if content_id not in seen:
            seen.add(content_id)
            unique.append(content_id)
    return unique


class ModerationActionProcessor:
    """Validate and apply moderation actions."""

    def __init__(
        self,
        content_store: ContentStore,
        report_store: ReportStore,
        content_source: ContentSource,
        audit_log: AuditLog,
        rate_limiter: RateLimiter,
        authorizer: Authorizer,
        dispatcher: NotificationDispatcher,
    ):
        self.content_store = content_store
        self.report_store = report_store
        self.content_source = content_source
        self.audit_log = audit_log
        self.rate_limiter = rate_limiter
        self.authorizer = authorizer
        self.dispatcher = dispatcher

    async def apply(self, action: ModerationAction) -> ModerationResult:
        """Apply one action.

        Raises:
            Unauthorized: If the actor is not a moderator
            RateLimited: If the moderator exhausted the action window
            ContentNotFound: If the content does not exist
            InvalidStateTransition: If the action is illegal from the current status
            Conflict: If a concurrent action changed the status first
            AuditWriteFailed: If the status changed but the audit write failed
        """
        ensure_moderator(self.authorizer, action.actor)
        await self.rate_limiter.enforce(action.actor.id, moderation_policy())
        return await self._apply_one(action)

    async def _apply_one(self, action: ModerationAction) -> ModerationResult:
        ref = action.ref
        with create_span(
            "moderation.apply",
            {"content_ref": str(ref), "action": action.action.value, "actor_id": action.actor.id},
        ):
            try:
                result = await self._transition(action)
            except ModerationError as e:
                record_action(action.action.value, e.code)
                record_exception(e)
                raise

        record_action(action.action.value, "success" if result.changed else "noop")
        log_info(
            logger,
            "Moderation action applied",
            content_ref=str(ref),
            action=action.action.value,
            actor_id=action.actor.id,
            previous_status=result.previous_status.value,
            new_status=result.status.value,
            changed=result.changed,
            resolved_reports=result.resolved_reports,
        )
        if result.changed:
            notify(
                self.dispatcher,
                ModerationEvent(
                    event_type=ACTION_EVENTS[action.action],
                    content_type=ref.content_type.value,
                    content_id=ref.content_id,
                    actor_id=action.actor.id,
                    reason=action.reason,
                    data={
                        "previous_status": result.previous_status.value,
                        "status": result.status.value,
                        "resolved_reports": result.resolved_reports,
                    },
                ),
            )
        return result

    async def _transition(self, action: ModerationAction) -> ModerationResult:
        ref = action.ref
        item = await track_content(self.content_store, self.content_source, ref)
        transition = plan_transition(item.content_status, action.action)

        if not transition.is_noop:
            swapped = await self.content_store.compare_and_set_status(
                ref, transition.from_status.value, transition.to_status.value
            )
            if not swapped:
                current = await self.content_store.get(ref)
                now = current.status if current is not None else "unknown"
                raise Conflict(
                    f"Content {ref} changed concurrently from {transition.from_status.value} to {now}"
                )

        entry = await self.audit_log.record(
            build_entry(
                ref,
                AuditAction(action.action.value),
                action.actor.id,
                action.reason,
                transition.from_status,
                transition.to_status,
            )
        )

        resolved = await self.report_store.resolve_pending_for_content(
            ref,
            ACTION_RESOLUTIONS[action.action],
            action.actor.id,
            action.reason,
            datetime.now(timezone.utc),
        )
        if resolved:
            await self.content_store.reset_report_count(ref)

        verb = ACTION_PAST_TENSE[action.action]
        if transition.is_noop:
            message = f"Content is already {verb}"
        else:
            message = f"Content {verb} successfully"
        return ModerationResult(
            success=True,
            message=message,
            ref=ref,
            previous_status=transition.from_status,
            status=transition.to_status,
            changed=not transition.is_noop,
            resolved_reports=resolved,
            audit_entry=entry,
        )

    async def apply_bulk(
        self,
        actor: Actor,
        content_type: ContentType,
        content_ids: list[str],
        action: ModerationActionType,
        reason: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ) -> BulkModerationResult:
        """Apply one action to many items of the same type.

        Items are independent: a failure is recorded against its id and
        the batch continues. Repeated ids are processed once. Items not
        finished before ``timeout_seconds`` elapses fail with ``cancelled``;
        an item interrupted mid-way is rolled back with its savepoint and
        items already applied stay applied.

        Raises:
            Unauthorized: If the actor is not a moderator
            ValidationFailed: If the id list is empty, too long or has blank ids
            RateLimited: If the moderator exhausted the action window
        """
        ensure_moderator(self.authorizer, actor)
        if not content_ids:
            raise ValidationFailed("contentIds must not be empty")
        if any(not content_id or not content_id.strip() for content_id in content_ids):
            raise ValidationFailed("contentIds must not contain blank ids")
        unique_ids = dedupe_ids(content_ids)
        if len(unique_ids) > settings.BULK_ACTION_MAX_ITEMS:
            raise ValidationFailed(
                f"At most {settings.BULK_ACTION_MAX_ITEMS} items can be moderated at once"
            )
        if timeout_seconds is not None and timeout_seconds <= 0:
            raise ValidationFailed("timeout_seconds must be positive")

        await self.rate_limiter.enforce(actor.id, moderation_policy())

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_seconds if timeout_seconds is not None else None
        result = BulkModerationResult(content_type=content_type, action=action)

        with create_span(
            "moderation.apply_bulk",
            {"content_type": content_type.value, "action": action.value, "item_count": len(unique_ids)},
        ):
            for content_id in unique_ids:
                if deadline is not None and loop.time() >= deadline:
                    self._fail(result, content_id, CANCELLED, "Deadline passed before item was processed")
                    continue

                item_action = ModerationAction(
                    ref=ContentRef(content_type, content_id),
                    action=action,
                    actor=actor,
                    reason=reason,
                )
                try:
                    async with self.content_store.item_scope():
                        if deadline is None:
                            outcome = await self._apply_one(item_action)
                        else:
                            outcome = await asyncio.wait_for(
                                self._apply_one(item_action), deadline - loop.time()
                            )
                except asyncio.TimeoutError:
                    record_action(action.value, CANCELLED)
                    self._fail(result, content_id, CANCELLED, "Deadline passed while item was processed")
                    continue
                except ModerationError as e:
                    self._fail(result, content_id, e.code, e.message)
                    continue
                except Exception as e:
                    log_error(
                        logger,
                        "Unexpected error in bulk moderation item",
                        e,
                        content_ref=str(item_action.ref),
                        action=action.value,
                    )
                    record_action(action.value, INTERNAL_ERROR)
                    self._fail(result, content_id, INTERNAL_ERROR, "Unexpected error")
                    continue

                result.affected_count += 1
                result.outcomes.append(
                    BulkItemOutcome(
                        content_id=content_id,
                        success=True,
                        changed=outcome.changed,
                        previous_status=outcome.previous_status,
                        status=outcome.status,
                        message=outcome.message,
                    )
                )

        log_info(
            logger,
            "Bulk moderation finished",
            content_type=content_type.value,
            action=action.value,
            actor_id=actor.id,
            requested=len(unique_ids),
            affected=result.affected_count,
            failed=len(result.failures),
        )
        return result

    @staticmethod
    def _fail(result: BulkModerationResult, content_id: str, error: str, message: str) -> None:
        result.failures.append(BulkItemFailure(content_id=content_id, error=error, message=message))
        result.outcomes.append(
            BulkItemOutcome(content_id=content_id, success=False, error=error, message=message)
        )

    async def history(self, actor: Actor, ref: ContentRef) -> list[ModerationAuditEntry]:
        """Audit trail of one item, oldest first."""
        ensure_moderator(self.authorizer, actor)
        return await self.audit_log.history(ref)
