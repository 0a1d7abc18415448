"""CSV report downloads.

Every failure is a 403 with ``{"error": ...}``; only a rate-limit rejection
answers 429.
"""

import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse

from backend.app.api.auth import get_optional_context
from backend.app.api.deps import (
    get_app_settings,
    get_memo_cache,
    get_rate_limiters,
    get_repositories,
)
from backend.app.cache import MemoCache
from backend.app.config import Settings
from backend.app.db.context import RequestContext
from backend.app.db.repositories import Repositories
from backend.app.errors import ActionError, LMSError, RateLimitedError
from backend.app.ratelimit import RateLimiters, RateLimitTier, make_rate_limit_key
from backend.app.reports.service import CsvReport, ReportService
from backend.app.utils.metrics import metrics

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reports", tags=["reports"])

EXPORT_BUCKET = "report_export"


def get_report_service(
    repos: Annotated[Repositories, Depends(get_repositories)],
    cache: Annotated[MemoCache, Depends(get_memo_cache)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> ReportService:
    return ReportService(repos.reports, cache, ttl_seconds=settings.cache_ttl_seconds)


def _parse_id(value: str, kind: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError as e:
        raise ActionError(f"Invalid {kind} id") from e


def _forbidden(message: str) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"error": message})


def csv_response(report: CsvReport) -> Response:
    return Response(
        content=report.body.encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{report.filename}.csv"'},
    )


async def _export(
    ctx: RequestContext | None,
    limiters: RateLimiters,
    render: Callable[[RequestContext], Awaitable[CsvReport]],
) -> Response:
    if ctx is None:
        return _forbidden("Not authenticated")

    key = make_rate_limit_key(ctx.caller_key, EXPORT_BUCKET)
    retry_after = await limiters.report.check_quota(key, datetime.now(timezone.utc))
    if retry_after is not None:
        metrics.inc_rate_limited(RateLimitTier.report.value)
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={"error": str(RateLimitedError(retry_after.seconds))},
            headers={"Retry-After": str(retry_after.seconds)},
        )

    try:
        report = await render(ctx)
    except LMSError as e:
        return _forbidden(str(e))
    except Exception:
        logger.exception(
            "Report export failed", extra={"structured": {"user_id": str(ctx.user_id)}}
        )
        return _forbidden("Failed to generate report")

    return csv_response(report)


@router.get("/admin/school/csv", response_model=None)
async def school_report_csv(
    ctx: Annotated[RequestContext | None, Depends(get_optional_context)],
    limiters: Annotated[RateLimiters, Depends(get_rate_limiters)],
    service: Annotated[ReportService, Depends(get_report_service)],
) -> Response:
    """Course overview for the tenant (admin or super_admin)."""
    return await _export(ctx, limiters, service.school_report)


@router.get("/teacher/{course_id}/csv", response_model=None)
async def class_report_csv(
    course_id: str,
    ctx: Annotated[RequestContext | None, Depends(get_optional_context)],
    limiters: Annotated[RateLimiters, Depends(get_rate_limiters)],
    service: Annotated[ReportService, Depends(get_report_service)],
) -> Response:
    """Grade sheet for one course (its teacher, or staff)."""
    return await _export(
        ctx, limiters, lambda c: service.class_report(c, _parse_id(course_id, "course"))
    )


@router.get("/parent/{student_id}/csv", response_model=None)
async def progress_report_csv(
    student_id: str,
    ctx: Annotated[RequestContext | None, Depends(get_optional_context)],
    limiters: Annotated[RateLimiters, Depends(get_rate_limiters)],
    service: Annotated[ReportService, Depends(get_report_service)],
) -> Response:
    """Graded work of one student (a linked parent, or staff)."""
    return await _export(
        ctx, limiters, lambda c: service.progress_report(c, _parse_id(student_id, "student"))
    )
