"""Moderation models for the content moderation engine.

Implements the moderated content projection, user reports and the
append-only moderation audit trail.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    BigInteger,
    DateTime,
    Identity,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.core.database import Base


class ContentType(str, Enum):
    """Kinds of moderatable content."""
    ARTICLE = "article"
    TOPIC = "topic"
    REPLY = "reply"
    JOB = "job"


class ContentStatus(str, Enum):
    """Moderation status of a content item.

    ``flagged`` is set by the system when the spam score crosses the
    threshold; moderators treat it like ``pending``.
    """
    PENDING = "pending"
    FLAGGED = "flagged"
    APPROVED = "approved"
    REJECTED = "rejected"
    HIDDEN = "hidden"
    DELETED = "deleted"


class ModerationActionType(str, Enum):
    """Moderator decisions that can be applied to a content item."""
    APPROVE = "approve"
    REJECT = "reject"
    HIDE = "hide"
    DELETE = "delete"


class AuditAction(str, Enum):
    """Actions recorded in the audit trail."""
    APPROVE = "approve"
    REJECT = "reject"
    HIDE = "hide"
    DELETE = "delete"
    AUTO_FLAG = "auto_flag"


class ReportReason(str, Enum):
    """Closed set of reasons a user can report content for."""
    SPAM = "spam"
    HARASSMENT = "harassment"
    OFF_TOPIC = "off_topic"
    MISINFORMATION = "misinformation"
    COPYRIGHT = "copyright"


class ReportStatus(str, Enum):
    """Report lifecycle: pending -> resolved | dismissed, never backward."""
    PENDING = "pending"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class ReportResolution(str, Enum):
    """Outcome recorded on a resolved report."""
    VIOLATION = "violation"
    NO_ACTION = "no_action"


class SpamRiskLevel(str, Enum):
    """Risk band derived from the external spam score."""
    UNKNOWN = "unknown"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


SYSTEM_ACTOR_ID = "system"


@dataclass(frozen=True)
class ContentRef:
    """Reference to one content item: its type plus its id."""
    content_type: ContentType
    content_id: str

    def __str__(self) -> str:
        return f"{self.content_type.value}:{self.content_id}"


class ModeratedContent(Base):
    """Moderation-relevant projection of a content item.

    The content itself lives in an external store; this row only carries
    what the engine needs to rank, filter and transition the item.
    """

    __tablename__ = "moderated_content"
    __table_args__ = (
        UniqueConstraint("content_type", "content_id", name="uq_moderated_content_ref"),
        Index("ix_moderated_content_queue", "status", "report_count"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    content_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    content_id: Mapped[str] = mapped_column(String(64), nullable=False)

    title: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    excerpt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    author_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    content_created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ContentStatus.PENDING.value, index=True
    )
    report_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    latest_report_reason: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    spam_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    @property
    def ref(self) -> ContentRef:
        return ContentRef(ContentType(self.content_type), self.content_id)

    @property
    def content_status(self) -> ContentStatus:
        return ContentStatus(self.status)

    def __repr__(self) -> str:
        return f"<ModeratedContent({self.content_type}:{self.content_id}, status={self.status})>"


class ContentReport(Base):
    """A user report filed against a content item."""

    __tablename__ = "content_reports"
    __table_args__ = (
        Index("ix_content_reports_content_ref", "content_type", "content_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    content_type: Mapped[str] = mapped_column(String(20), nullable=False)
    content_id: Mapped[str] = mapped_column(String(64), nullable=False)
    reporter_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    reason: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ReportStatus.PENDING.value, index=True
    )
    resolution: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    resolved_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    resolution_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True
    )

    @property
    def ref(self) -> ContentRef:
        return ContentRef(ContentType(self.content_type), self.content_id)

    def is_pending(self) -> bool:
        return self.status == ReportStatus.PENDING.value

    def __repr__(self) -> str:
        return f"<ContentReport(id={self.id}, {self.content_type}:{self.content_id}, status={self.status})>"


class ModerationAuditEntry(Base):
    """Immutable record of one applied moderation decision.

    Rows are only ever inserted. ``sequence`` gives a total order that
    survives identical timestamps.
    """

    __tablename__ = "moderation_audit_entries"
    __table_args__ = (
        Index("ix_moderation_audit_content_ref", "content_type", "content_id", "sequence"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    sequence: Mapped[int] = mapped_column(
        BigInteger, Identity(always=True), nullable=False, unique=True
    )
    content_type: Mapped[str] = mapped_column(String(20), nullable=False)
    content_id: Mapped[str] = mapped_column(String(64), nullable=False)

    action: Mapped[str] = mapped_column(String(20), nullable=False)
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    previous_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    new_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    @property
    def ref(self) -> ContentRef:
        return ContentRef(ContentType(self.content_type), self.content_id)

    def __repr__(self) -> str:
        return f"<ModerationAuditEntry({self.content_type}:{self.content_id}, action={self.action}, actor={self.actor_id})>"
