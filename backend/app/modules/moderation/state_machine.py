"""Content status state machine.

Transition table:

    pending, flagged                      --approve--> approved
    pending, flagged                      --reject-->  rejected
    pending, flagged, approved, rejected  --hide-->    hidden
    any status except deleted             --delete-->  deleted

Repeating a decision whose target equals the current status is a no-op
success, so clients can retry safely. Nothing leaves ``deleted``.
"""

from dataclasses import dataclass

from app.modules.moderation.exceptions import InvalidStateTransition
from app.modules.moderation.models import ContentStatus, ModerationActionType

_AWAITING_DECISION = frozenset({ContentStatus.PENDING, ContentStatus.FLAGGED})

# action -> (target status, statuses the action may start from)
TRANSITIONS: dict[ModerationActionType, tuple[ContentStatus, frozenset[ContentStatus]]] = {
    ModerationActionType.APPROVE: (ContentStatus.APPROVED, _AWAITING_DECISION),
    ModerationActionType.REJECT: (ContentStatus.REJECTED, _AWAITING_DECISION),
    ModerationActionType.HIDE: (
        ContentStatus.HIDDEN,
        _AWAITING_DECISION | {ContentStatus.APPROVED, ContentStatus.REJECTED},
    ),
    ModerationActionType.DELETE: (
        ContentStatus.DELETED,
        frozenset(ContentStatus) - {ContentStatus.DELETED},
    ),
}

# Every action must have a row; adding an enum member without one fails at import.
if set(TRANSITIONS) != set(ModerationActionType):
    raise RuntimeError("Content status transition table is incomplete")

@dataclass(frozen=True)
class Transition:
    """Result of checking an action against the current status."""
    action: ModerationActionType
    from_status: ContentStatus
    to_status: ContentStatus

    @property
    def is_noop(self) -> bool:
        return self.from_status == self.to_status


def plan_transition(current: ContentStatus, action: ModerationActionType) -> Transition:
    """Work out the transition ``action`` causes from ``current``.

    Args:
        current: Current status of the content item
        action: Requested moderation action

    Returns:
        The transition to apply; ``is_noop`` when already in the target state

    Raises:
        InvalidStateTransition: If the action is not legal from ``current``
    """
    if current == ContentStatus.DELETED:
        raise InvalidStateTransition("Content is already deleted")

    target, allowed_from = TRANSITIONS[action]
    if current == target:
        return Transition(action, current, target)
    if current not in allowed_from:
        raise InvalidStateTransition(
            f"Cannot {action.value} content that is {current.value}"
        )
    return Transition(action, current, target)


def can_apply(current: ContentStatus, action: ModerationActionType) -> bool:
    """Check whether ``action`` is accepted from ``current`` (no-ops included)."""
    try:
        plan_transition(current, action)
    except InvalidStateTransition:
        return False
    return True


def is_awaiting_decision(status: ContentStatus) -> bool:
    """Check whether an item still needs a moderator decision."""
    return status in _AWAITING_DECISION
