"""Domain schemas. Request/response and validation."""

from audit_trail.domain.schemas.audit import (
    AuditExportQuery,
    AuditLogListResponse,
    AuditLogQuery,
    AuditRecordResponse,
    AuditStatsResponse,
    CleanupRequest,
    CleanupResponse,
    JsonExportResponse,
    StatsQuery,
    TimelineQuery,
    TimelineResponse,
)

__all__ = [
    "AuditExportQuery",
    "AuditLogListResponse",
    "AuditLogQuery",
    "AuditRecordResponse",
    "AuditStatsResponse",
    "CleanupRequest",
    "CleanupResponse",
    "JsonExportResponse",
    "StatsQuery",
    "TimelineQuery",
    "TimelineResponse",
]
