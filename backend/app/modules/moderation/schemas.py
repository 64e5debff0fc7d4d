"""Pydantic schemas for the moderation API.

Request bodies accept the camelCase field names used by the web client.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ============================================
# Report Schemas
# ============================================


class ReportCreate(BaseModel):
    """Body of ``POST /reports``."""

    model_config = ConfigDict(populate_by_name=True)

    reportable_type: str = Field(..., alias="reportableType")
    reportable_id: str = Field(..., alias="reportableId", min_length=1, max_length=64)
    reason: str
    description: Optional[str] = None


class ReportResolve(BaseModel):
    """Body of ``PUT /reports/{id}/resolve``."""

    model_config = ConfigDict(populate_by_name=True)

    status: str
    resolution_note: Optional[str] = Field(default=None, alias="resolutionNote", max_length=1000)


class ReportResponse(BaseModel):
    """Schema for report response."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    content_type: str
    content_id: str
    reporter_id: str
    reason: str
    description: Optional[str]
    status: str
    resolution: Optional[str]
    resolved_by: Optional[str]
    resolution_note: Optional[str]
    resolved_at: Optional[datetime]
    created_at: datetime


class ReportListResponse(BaseModel):
    """Schema for paginated report list."""

    items: list[ReportResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class ReportStatisticsResponse(BaseModel):
    total: int
    by_status: dict[str, int]
    by_reason: dict[str, int]
    by_content_type: dict[str, int]


class FalseReportCountResponse(BaseModel):
    reporter_id: str
    false_reports: int


# ============================================
# Content Schemas
# ============================================


class ContentResponse(BaseModel):
    """Moderation projection of a content item."""

    model_config = ConfigDict(from_attributes=True)

    content_type: str
    content_id: str
    title: Optional[str]
    excerpt: Optional[str]
    author_id: Optional[str]
    content_created_at: datetime
    status: str
    report_count: int
    latest_report_reason: Optional[str]
    spam_score: Optional[int]


class QueueItemResponse(ContentResponse):
    spam_risk: str


class QueueListResponse(BaseModel):
    """Schema for a page of the moderation queue."""

    items: list[QueueItemResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class ReportDetailResponse(BaseModel):
    """A report with its content and the other reports on the same item."""

    report: ReportResponse
    content: Optional[ContentResponse]
    related_reports: list[ReportResponse]
    total_reports: int


# ============================================
# Moderation Action Schemas
# ============================================


class ModerationActionRequest(BaseModel):
    """Optional body of the single-item action endpoints."""

    reason: Optional[str] = Field(default=None, max_length=1000)


class ModerationActionResponse(BaseModel):
    success: bool
    message: str
    content_type: str
    content_id: str
    previous_status: str
    status: str
    changed: bool
    resolved_reports: int


class BulkModerationRequest(BaseModel):
    """Body of ``POST /content/bulk``."""

    model_config = ConfigDict(populate_by_name=True)

    content_type: str = Field(..., alias="contentType")
    content_ids: list[str] = Field(..., alias="contentIds")
    action: str
    reason: Optional[str] = Field(default=None, max_length=1000)
    timeout_seconds: Optional[float] = Field(default=None, alias="timeoutSeconds", gt=0)


class BulkItemFailureResponse(BaseModel):
    content_id: str
    error: str
    message: str


class BulkItemOutcomeResponse(BaseModel):
    content_id: str
    success: bool
    changed: bool
    previous_status: Optional[str]
    status: Optional[str]
    error: Optional[str]
    message: Optional[str]


class BulkModerationResponse(BaseModel):
    """Aggregate bulk outcome."""

    affected_count: int
    message: str
    failures: list[BulkItemFailureResponse]
    results: list[BulkItemOutcomeResponse]


class SpamScoreUpdate(BaseModel):
    """Body of ``PUT /content/{type}/{id}/spam-score``."""

    score: int


# ============================================
# Audit Schemas
# ============================================


class AuditEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    sequence: int
    content_type: str
    content_id: str
    action: str
    actor_id: str
    reason: Optional[str]
    previous_status: Optional[str]
    new_status: Optional[str]
    created_at: datetime


class AuditHistoryResponse(BaseModel):
    content_type: str
    content_id: str
    entries: list[AuditEntryResponse]
