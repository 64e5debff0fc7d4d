"""API routers for reports and the moderation queue."""

import uuid
from typing import NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.modules.auth.actor import Actor
from app.modules.auth.dependencies import get_current_actor
from app.modules.moderation.action_processor import (
    ModerationAction,
    ModerationActionProcessor,
    ModerationResult,
)
from app.modules.moderation.dependencies import (
    get_action_processor,
    get_queue_service,
    get_report_service,
    get_spam_service,
)
from app.modules.moderation.exceptions import ModerationError, RateLimited
from app.modules.moderation.filters import (
    build_queue_query,
    build_report_query,
    parse_enum,
    total_pages,
)
from app.modules.moderation.models import ContentRef, ContentType, ModerationActionType
from app.modules.moderation.queue_service import ModerationQueueService
from app.modules.moderation.report_service import ReportService
from app.modules.moderation.schemas import (
    AuditEntryResponse,
    AuditHistoryResponse,
    BulkItemFailureResponse,
    BulkItemOutcomeResponse,
    BulkModerationRequest,
    BulkModerationResponse,
    ContentResponse,
    FalseReportCountResponse,
    ModerationActionRequest,
    ModerationActionResponse,
    QueueItemResponse,
    QueueListResponse,
    ReportCreate,
    ReportDetailResponse,
    ReportListResponse,
    ReportResolve,
    ReportResponse,
    ReportStatisticsResponse,
    SpamScoreUpdate,
)
from app.modules.moderation.spam import SpamScoreService, band_for_score

reports_router = APIRouter(prefix="/reports", tags=["reports"])
content_router = APIRouter(prefix="/content", tags=["moderation"])


def raise_http_error(error: ModerationError) -> NoReturn:
    """Translate an engine error into an HTTPException."""
    headers = None
    if isinstance(error, RateLimited):
        headers = {"Retry-After": str(error.retry_after_seconds)}
    raise HTTPException(
        status_code=error.http_status,
        detail=error.to_detail(),
        headers=headers,
    ) from error


def _content_ref(content_type: str, content_id: str) -> ContentRef:
    return ContentRef(parse_enum(ContentType, content_type, "content type"), content_id)


# ============================================
# Reports
# ============================================


@reports_router.post("", response_model=ReportResponse, status_code=status.HTTP_201_CREATED)
async def file_report(
    data: ReportCreate,
    actor: Actor = Depends(get_current_actor),
    service: ReportService = Depends(get_report_service),
):
    """File a report against a content item.

    Rate limited per reporter.
    """
    try:
        report = await service.file_report(
            actor,
            _content_ref(data.reportable_type, data.reportable_id),
            data.reason,
            data.description,
        )
    except ModerationError as e:
        raise_http_error(e)
    return ReportResponse.model_validate(report)


@reports_router.get("", response_model=ReportListResponse)
async def list_reports(
    report_status: Optional[str] = Query(None, alias="status"),
    reason: Optional[str] = Query(None),
    reportable_type: Optional[str] = Query(None, alias="reportableType"),
    page: int = Query(1, description="Page number"),
    limit: Optional[int] = Query(None, description="Items per page"),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
    actor: Actor = Depends(get_current_actor),
    service: ReportService = Depends(get_report_service),
):
    """List reports for moderators."""
    try:
        query = build_report_query(
            status=report_status,
            reason=reason,
            content_type=reportable_type,
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            page_size=limit,
        )
        reports, total = await service.list_reports(actor, query)
    except ModerationError as e:
        raise_http_error(e)

    return ReportListResponse(
        items=[ReportResponse.model_validate(r) for r in reports],
        total=total,
        page=query.page,
        page_size=query.page_size,
        total_pages=total_pages(total, query.page_size),
    )


@reports_router.get("/statistics", response_model=ReportStatisticsResponse)
async def get_report_statistics(
    actor: Actor = Depends(get_current_actor),
    service: ReportService = Depends(get_report_service),
):
    """Aggregate report counts by status, reason and content type."""
    try:
        return ReportStatisticsResponse(**await service.get_statistics(actor))
    except ModerationError as e:
        raise_http_error(e)


@reports_router.get(
    "/reporters/{reporter_id}/false-reports",
    response_model=FalseReportCountResponse,
)
async def get_false_report_count(
    reporter_id: str,
    actor: Actor = Depends(get_current_actor),
    service: ReportService = Depends(get_report_service),
):
    try:
        count = await service.count_false_reports(actor, reporter_id)
    except ModerationError as e:
        raise_http_error(e)
    return FalseReportCountResponse(reporter_id=reporter_id, false_reports=count)


@reports_router.get("/{report_id}", response_model=ReportDetailResponse)
async def get_report(
    report_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    service: ReportService = Depends(get_report_service),
):
    """Get a report with related reports on the same content."""
    try:
        detail = await service.get_report_detail(actor, report_id)
    except ModerationError as e:
        raise_http_error(e)

    return ReportDetailResponse(
        report=ReportResponse.model_validate(detail.report),
        content=ContentResponse.model_validate(detail.content) if detail.content else None,
        related_reports=[ReportResponse.model_validate(r) for r in detail.related_reports],
        total_reports=detail.total_reports,
    )


@reports_router.put("/{report_id}/resolve", response_model=ReportResponse)
async def resolve_report(
    report_id: uuid.UUID,
    data: ReportResolve,
    actor: Actor = Depends(get_current_actor),
    service: ReportService = Depends(get_report_service),
):
    """Resolve or dismiss a pending report."""
    try:
        report = await service.resolve_report(actor, report_id, data.status, data.resolution_note)
    except ModerationError as e:
        raise_http_error(e)
    return ReportResponse.model_validate(report)


# ============================================
# Moderation queue and actions
# ============================================


@content_router.get("", response_model=QueueListResponse)
async def list_queue(
    tab: Optional[str] = Query(None),
    content_type: Optional[str] = Query(None, alias="type"),
    content_status: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = Query(None, max_length=200),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
    page: int = Query(1, description="Page number"),
    limit: Optional[int] = Query(None, description="Items per page"),
    actor: Actor = Depends(get_current_actor),
    service: ModerationQueueService = Depends(get_queue_service),
):
    """List the moderation queue."""
    try:
        query = build_queue_query(
            tab=tab,
            content_type=content_type,
            status=content_status,
            search=search,
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            page_size=limit,
        )
        result = await service.list_queue(actor, query)
    except ModerationError as e:
        raise_http_error(e)

    return QueueListResponse(
        items=[
            QueueItemResponse(
                **ContentResponse.model_validate(item.content).model_dump(),
                spam_risk=item.spam_risk.value,
            )
            for item in result.items
        ],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
    )


@content_router.post("/bulk", response_model=BulkModerationResponse)
async def bulk_moderate(
    data: BulkModerationRequest,
    actor: Actor = Depends(get_current_actor),
    processor: ModerationActionProcessor = Depends(get_action_processor),
):
    """Apply one action to many items; failures are reported per item."""
    try:
        result = await processor.apply_bulk(
            actor,
            parse_enum(ContentType, data.content_type, "content type"),
            data.content_ids,
            parse_enum(ModerationActionType, data.action, "action"),
            reason=data.reason,
            timeout_seconds=data.timeout_seconds,
        )
    except ModerationError as e:
        raise_http_error(e)

    return BulkModerationResponse(
        affected_count=result.affected_count,
        message=result.message,
        failures=[
            BulkItemFailureResponse(content_id=f.content_id, error=f.error, message=f.message)
            for f in result.failures
        ],
        results=[
            BulkItemOutcomeResponse(
                content_id=o.content_id,
                success=o.success,
                changed=o.changed,
                previous_status=o.previous_status.value if o.previous_status else None,
                status=o.status.value if o.status else None,
                error=o.error,
                message=o.message,
            )
            for o in result.outcomes
        ],
    )


@content_router.get("/{content_type}/{content_id}/history", response_model=AuditHistoryResponse)
async def get_content_history(
    content_type: str,
    content_id: str,
    actor: Actor = Depends(get_current_actor),
    processor: ModerationActionProcessor = Depends(get_action_processor),
):
    """Audit trail of a content item, oldest first."""
    try:
        ref = _content_ref(content_type, content_id)
        entries = await processor.history(actor, ref)
    except ModerationError as e:
        raise_http_error(e)

    return AuditHistoryResponse(
        content_type=ref.content_type.value,
        content_id=ref.content_id,
        entries=[AuditEntryResponse.model_validate(e) for e in entries],
    )


def _action_response(result: ModerationResult) -> ModerationActionResponse:
    return ModerationActionResponse(
        success=result.success,
        message=result.message,
        content_type=result.ref.content_type.value,
        content_id=result.ref.content_id,
        previous_status=result.previous_status.value,
        status=result.status.value,
        changed=result.changed,
        resolved_reports=result.resolved_reports,
    )


async def _apply(
    processor: ModerationActionProcessor,
    actor: Actor,
    content_type: str,
    content_id: str,
    action: ModerationActionType,
    reason: Optional[str],
) -> ModerationActionResponse:
    try:
        result = await processor.apply(
            ModerationAction(
                ref=_content_ref(content_type, content_id),
                action=action,
                actor=actor,
                reason=reason,
            )
        )
    except ModerationError as e:
        raise_http_error(e)
    return _action_response(result)


@content_router.put("/{content_type}/{content_id}/approve", response_model=ModerationActionResponse)
async def approve_content(
    content_type: str,
    content_id: str,
    data: Optional[ModerationActionRequest] = None,
    actor: Actor = Depends(get_current_actor),
    processor: ModerationActionProcessor = Depends(get_action_processor),
):
    return await _apply(
        processor, actor, content_type, content_id,
        ModerationActionType.APPROVE, data.reason if data else None,
    )


@content_router.put("/{content_type}/{content_id}/reject", response_model=ModerationActionResponse)
async def reject_content(
    content_type: str,
    content_id: str,
    data: Optional[ModerationActionRequest] = None,
    actor: Actor = Depends(get_current_actor),
    processor: ModerationActionProcessor = Depends(get_action_processor),
):
    return await _apply(
        processor, actor, content_type, content_id,
        ModerationActionType.REJECT, data.reason if data else None,
    )


@content_router.put("/{content_type}/{content_id}/hide", response_model=ModerationActionResponse)
async def hide_content(
    content_type: str,
    content_id: str,
    data: Optional[ModerationActionRequest] = None,
    actor: Actor = Depends(get_current_actor),
    processor: ModerationActionProcessor = Depends(get_action_processor),
):
    return await _apply(
        processor, actor, content_type, content_id,
        ModerationActionType.HIDE, data.reason if data else None,
    )


@content_router.delete("/{content_type}/{content_id}", response_model=ModerationActionResponse)
async def delete_content(
    content_type: str,
    content_id: str,
    reason: Optional[str] = Query(None, max_length=1000),
    actor: Actor = Depends(get_current_actor),
    processor: ModerationActionProcessor = Depends(get_action_processor),
):
    return await _apply(
        processor, actor, content_type, content_id, ModerationActionType.DELETE, reason
    )


@content_router.put("/{content_type}/{content_id}/spam-score", response_model=QueueItemResponse)
async def update_spam_score(
    content_type: str,
    content_id: str,
    data: SpamScoreUpdate,
    actor: Actor = Depends(get_current_actor),
    service: SpamScoreService = Depends(get_spam_service),
):
    """Store the classifier's spam score for an item."""
    try:
        item = await service.record_score(actor, _content_ref(content_type, content_id), data.score)
    except ModerationError as e:
        raise_http_error(e)

    return QueueItemResponse(
        **ContentResponse.model_validate(item).model_dump(),
        spam_risk=band_for_score(item.spam_score).value,
    )
