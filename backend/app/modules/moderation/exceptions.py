"""Exceptions raised by the moderation engine.

Each error carries a stable ``code`` and the HTTP status the router
answers with.
"""

from typing import Optional

from fastapi import status


class ModerationError(Exception):
    """Base exception for moderation engine errors."""

    code: str = "moderation_error"
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_detail(self) -> dict:
        return {"error": self.code, "message": self.message}


class ValidationFailed(ModerationError):
    """Malformed input: bad enum value, out-of-bounds length."""

    code = "validation_failed"
    http_status = status.HTTP_400_BAD_REQUEST


class Unauthorized(ModerationError):
    """The actor lacks the required capability."""

    code = "unauthorized"
    http_status = status.HTTP_403_FORBIDDEN


class ContentNotFound(ModerationError):
    """The referenced content item does not exist."""

    code = "content_not_found"
    http_status = status.HTTP_404_NOT_FOUND


class ReportNotFound(ModerationError):
    """The referenced report does not exist."""

    code = "report_not_found"
    http_status = status.HTTP_404_NOT_FOUND


class InvalidStateTransition(ModerationError):
    """The action is not legal from the item's current status."""

    code = "invalid_state_transition"
    http_status = status.HTTP_409_CONFLICT


class Conflict(ModerationError):
    """Lost a compare-and-set race against a concurrent transition."""

    code = "conflict"
    http_status = status.HTTP_409_CONFLICT


class RateLimited(ModerationError):
    """The actor exceeded the window of a rate limit policy."""

    code = "rate_limited"
    http_status = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, policy: str, retry_after_seconds: int):
        super().__init__(f"Rate limit exceeded for {policy}")
        self.policy = policy
        self.retry_after_seconds = retry_after_seconds

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail["retry_after_seconds"] = self.retry_after_seconds
        detail["policy"] = self.policy
        return detail


class StorageUnavailable(ModerationError):
    """A downstream store could not be reached."""

    code = "storage_unavailable"
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE


class AuditWriteFailed(StorageUnavailable):
    """The audit entry for an already-applied transition could not be written."""

    code = "audit_write_failed"

    def __init__(self, message: str, content_ref: Optional[str] = None):
        super().__init__(message)
        self.content_ref = content_ref
