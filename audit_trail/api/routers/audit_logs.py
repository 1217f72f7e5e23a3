"""Audit logs API router: listing, lookup, export, stats, per-actor timeline, retention cleanup."""

import json
from typing import Annotated, Any, Dict

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from audit_trail.api.dependencies import (
    get_query_service,
    get_retention_service,
    request_metadata,
    require_audit_reader,
    require_super_admin,
)
from audit_trail.api.interceptor import audit_high_risk
from audit_trail.application.audit_query_service import AuditQueryService, CsvExport
from audit_trail.application.retention_service import RetentionService
from audit_trail.domain.exceptions import DomainValidationError
from audit_trail.domain.schemas.audit import (
    AuditExportQuery,
    AuditLogListResponse,
    AuditLogQuery,
    AuditRecordDetailResponse,
    AuditStatsResponse,
    CleanupRequest,
    CleanupResponse,
    StatsQuery,
    TimelineQuery,
    TimelineResponse,
)
from audit_trail.domain.validators.audit_validator import parse_input
from audit_trail.security.rbac import Actor

router = APIRouter(dependencies=[Depends(require_audit_reader)])

ReaderDep = Annotated[Actor, Depends(require_audit_reader)]
QueryServiceDep = Annotated[AuditQueryService, Depends(get_query_service)]


async def _json_body(request: Request) -> Dict[str, Any]:
    """Optional JSON object body. Empty body means no fields."""
    raw = await request.body()
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise DomainValidationError(
            "Validation failed",
            errors=[{"field": "body", "message": "Malformed JSON body"}],
        ) from e
    if not isinstance(data, dict):
        raise DomainValidationError(
            "Validation failed",
            errors=[{"field": "body", "message": "Body must be a JSON object"}],
        )
    return data


@router.get("", response_model=AuditLogListResponse)
async def list_audit_logs(request: Request, actor: ReaderDep, service: QueryServiceDep):
    """Filtered, paginated audit log listing. Newest first by default."""
    query = parse_input(AuditLogQuery, request.query_params)
    return await service.list_logs(query, actor, request_metadata(request, status_code=200))


@router.get("/export", response_model=None)
async def export_audit_logs(request: Request, actor: ReaderDep, service: QueryServiceDep):
    """Unpaged CSV or JSON export of matching audit logs."""
    query = parse_input(AuditExportQuery, request.query_params)
    result = await service.export_logs(query, actor, request_metadata(request, status_code=200))
    if isinstance(result, CsvExport):
        return Response(
            content=result.content,
            media_type=result.media_type,
            headers={"Content-Disposition": f'attachment; filename="{result.filename}"'},
        )
    return JSONResponse(content=result.model_dump(mode="json", by_alias=True))


@router.get("/stats", response_model=AuditStatsResponse)
async def audit_stats(request: Request, service: QueryServiceDep):
    """Aggregate counts, daily trend and top actors over a period."""
    query = parse_input(StatsQuery, request.query_params)
    return await service.stats(query)


@router.get("/user/{user_id}/timeline", response_model=TimelineResponse)
async def user_timeline(user_id: str, request: Request, actor: ReaderDep, service: QueryServiceDep):
    """Most recent audit records for one actor."""
    query = parse_input(TimelineQuery, request.query_params)
    return await service.timeline(user_id, query, actor, request_metadata(request, status_code=200))


@router.delete(
    "/cleanup",
    response_model=CleanupResponse,
    dependencies=[Depends(require_super_admin), Depends(audit_high_risk)],
)
async def cleanup_audit_logs(
    request: Request,
    actor: Annotated[Actor, Depends(require_super_admin)],
    service: Annotated[RetentionService, Depends(get_retention_service)],
):
    """Purge records older than olderThanDays. Super-admin only; the purge itself is audited."""
    data = await _json_body(request)
    data.setdefault("olderThanDays", request.app.state.settings.audit_default_retention_days)
    body = parse_input(CleanupRequest, data)
    return await service.cleanup(body.older_than_days, actor, request_metadata(request, status_code=200))


@router.get("/{record_id}", response_model=AuditRecordDetailResponse)
async def get_audit_log(record_id: str, service: QueryServiceDep):
    """Single audit record by id."""
    return await service.get_log(record_id)
