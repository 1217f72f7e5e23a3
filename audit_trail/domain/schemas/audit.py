"""Pydantic schemas for the audit log API. Strict validation, no DB or infrastructure."""

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from audit_trail.domain.models.audit_record import (
    ActionType,
    AuditRecord,
    AuditStatus,
    Resource,
    RiskLevel,
    Severity,
)

OBJECT_ID_PATTERN = re.compile(r"^[a-fA-F0-9]{24}$")
PUBLIC_MAX_LIMIT = 100
DEFAULT_LIMIT = 50
# Deepest reachable page at the largest page size; keeps OFFSET within a 32-bit integer.
MAX_PAGE = 2**31 // PUBLIC_MAX_LIMIT

SortField = Literal["createdAt", "actionType", "resource", "severity", "status"]
StatsPeriod = Literal["24h", "7d", "30d", "90d"]
ExportFormat = Literal["csv", "json"]


def parse_iso_datetime(value: Any) -> Any:
    """Accept ISO-8601 dates and datetimes; naive values are taken as UTC."""
    if isinstance(value, str) and not value.strip():
        return None
    if value is None or isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError as e:
            raise ValueError("must be an ISO-8601 date or datetime") from e
    else:
        raise ValueError("must be an ISO-8601 date or datetime")
    if parsed is not None and parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class AuditFilterQuery(_CamelModel):
    """Filter fields shared by listing and export. Empty strings mean 'not set'."""

    user: Optional[str] = Field(None, description="Actor id (24-hex)")
    action_type: Optional[ActionType] = None
    resource: Optional[Resource] = None
    severity: Optional[Severity] = None
    status: Optional[AuditStatus] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None

    @field_validator(
        "user", "action_type", "resource", "severity", "status", "date_from", "date_to",
        mode="before",
    )
    @classmethod
    def blank_is_unset(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("user")
    @classmethod
    def user_must_be_object_id(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not OBJECT_ID_PATTERN.match(v):
            raise ValueError("must be a 24-character hexadecimal id")
        return v

    @field_validator("date_from", "date_to", mode="before")
    @classmethod
    def dates_are_iso8601(cls, v: Any) -> Any:
        return parse_iso_datetime(v)

    @model_validator(mode="after")
    def date_range_is_ordered(self) -> "AuditFilterQuery":
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("dateFrom must be before dateTo")
        return self


class AuditLogQuery(AuditFilterQuery):
    """Query string for GET /admin/audit-logs."""

    page: int = Field(1, ge=1, le=MAX_PAGE)
    limit: int = Field(DEFAULT_LIMIT, ge=1, le=PUBLIC_MAX_LIMIT)
    sort_by: SortField = "createdAt"
    sort_order: Literal["asc", "desc"] = "desc"


class AuditExportQuery(AuditFilterQuery):
    """Query string for GET /admin/audit-logs/export."""

    format: ExportFormat = "csv"


class StatsQuery(_CamelModel):
    period: StatsPeriod = "30d"


class TimelineQuery(_CamelModel):
    limit: int = Field(DEFAULT_LIMIT, ge=1, le=PUBLIC_MAX_LIMIT)


class CleanupRequest(_CamelModel):
    """Body for DELETE /admin/audit-logs/cleanup."""

    older_than_days: int = Field(365, ge=1, le=36500)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class AuditRecordResponse(_CamelModel):
    """Serialized audit record. camelCase on the wire."""

    id: str
    actor: Optional[str] = None
    action: str
    action_type: ActionType
    resource: Resource
    resource_id: Optional[str] = None
    details: Optional[str] = None
    changes: Optional[Dict[str, Any]] = None
    metadata: Dict[str, Any]
    severity: Severity
    status: AuditStatus
    tags: List[str] = []
    is_system_generated: bool = False
    risk_level: RiskLevel
    related_logs: List[str] = []
    created_at: datetime

    @classmethod
    def from_record(cls, record: AuditRecord) -> "AuditRecordResponse":
        return cls(
            id=str(record.id),
            actor=record.actor,
            action=record.action,
            action_type=record.action_type,
            resource=record.resource,
            resource_id=record.resource_id,
            details=record.details,
            changes=record.changes.to_dict() if record.changes else None,
            metadata=record.metadata.to_dict(),
            severity=record.severity,
            status=record.status,
            tags=sorted(record.tags),
            is_system_generated=record.is_system_generated,
            risk_level=record.risk_level,
            related_logs=[str(r) for r in record.related_logs],
            created_at=record.created_at,
        )


class AuditRecordDetailResponse(AuditRecordResponse):
    """Single record with its related records resolved."""

    related_logs: List[AuditRecordResponse] = []

    @classmethod
    def with_related(cls, record: AuditRecord, related: List[AuditRecord]) -> "AuditRecordDetailResponse":
        base = AuditRecordResponse.from_record(record).model_dump(exclude={"related_logs"})
        return cls(**base, related_logs=[AuditRecordResponse.from_record(r) for r in related])


class PaginationInfo(_CamelModel):
    page: int
    limit: int
    total: int
    pages: int


class AuditLogListResponse(_CamelModel):
    logs: List[AuditRecordResponse]
    pagination: PaginationInfo


class ExportInfo(_CamelModel):
    exported_at: datetime
    filters: Dict[str, Any]
    total_records: int


class JsonExportResponse(_CamelModel):
    data: List[AuditRecordResponse]
    export_info: ExportInfo


class ActorSummary(_CamelModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None


class CountBucket(_CamelModel):
    key: str
    count: int


class TopActor(_CamelModel):
    user: ActorSummary
    count: int


class DailyCount(_CamelModel):
    date: str
    count: int


class StatsOverview(_CamelModel):
    total_operations: int
    failed_operations: int
    success_rate: float


class AuditStatsResponse(_CamelModel):
    period: StatsPeriod
    overview: StatsOverview
    action_type_stats: List[CountBucket]
    resource_stats: List[CountBucket]
    severity_stats: List[CountBucket]
    top_users: List[TopActor]
    daily_activity: List[DailyCount]


class TimelineResponse(_CamelModel):
    user: ActorSummary
    timeline: List[AuditRecordResponse]
    total_logs: int


class CleanupResponse(_CamelModel):
    message: str
    deleted_count: int
    cutoff_date: datetime
