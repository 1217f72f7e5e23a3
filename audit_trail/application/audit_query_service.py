"""Audit query service. Listing, lookup, export, stats and timelines over the audit store."""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, time, timedelta, timezone
from typing import Callable, Optional, Union

from audit_trail.application.actor_directory import ActorDirectory, ActorIdentity
from audit_trail.application.exceptions import AuditReadError, NotFoundError
from audit_trail.application.export import (
    CSV_MEDIA_TYPE,
    export_filename,
    render_csv,
    render_json,
)
from audit_trail.audit.exceptions import AuditStoreError
from audit_trail.audit.recorder import AuditRecorder
from audit_trail.audit.records import build_access_record, build_export_record
from audit_trail.audit.repository import (
    EXPORT_HARD_LIMIT,
    AuditFilters,
    AuditRepository,
    Pagination,
)
from audit_trail.domain.models.audit_record import RecordMetadata, Resource
from audit_trail.domain.schemas.audit import (
    ActorSummary,
    AuditExportQuery,
    AuditFilterQuery,
    AuditRecordDetailResponse,
    AuditLogListResponse,
    AuditLogQuery,
    AuditRecordResponse,
    AuditStatsResponse,
    CountBucket,
    DailyCount,
    JsonExportResponse,
    PaginationInfo,
    StatsOverview,
    StatsQuery,
    TimelineQuery,
    TimelineResponse,
    TopActor,
)
from audit_trail.domain.validators.audit_validator import validate_object_id, validate_record_id
from audit_trail.security.rbac import Actor

STATS_PERIODS = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
}
TOP_ACTORS = 10


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def filters_from(query: AuditFilterQuery) -> AuditFilters:
    return AuditFilters(
        actor_id=query.user,
        action_type=query.action_type,
        resource=query.resource,
        severity=query.severity,
        status=query.status,
        date_from=query.date_from,
        date_to=query.date_to,
    )


def trend_window_start(now: datetime, period: timedelta) -> datetime:
    """
    Start of the daily trend: the later of the period start and UTC midnight of the
    oldest whole day in the period, so the trend has at most period-in-days buckets.
    """
    days = max(1, period.days)
    midnight = datetime.combine(now.date(), time.min, tzinfo=timezone.utc)
    return max(now - period, midnight - timedelta(days=days - 1))


def success_rate(total: int, failed: int) -> float:
    if total == 0:
        return 100.0
    return round((total - failed) / total * 100, 2)


def _summary(actor_id: str, identity: Optional[ActorIdentity]) -> ActorSummary:
    if identity is None:
        return ActorSummary(id=actor_id)
    return ActorSummary(id=identity.id, name=identity.name, email=identity.email, role=identity.role)


@dataclass(frozen=True)
class CsvExport:
    content: str
    filename: str
    media_type: str = CSV_MEDIA_TYPE


class AuditQueryService:
    """
    Read side of the audit trail. No HTTP, no FastAPI.
    Store read failures surface as AuditReadError with a generic message; the access
    records this service writes go through the recorder and never fail the caller.
    """

    def __init__(
        self,
        repository: AuditRepository,
        directory: ActorDirectory,
        recorder: AuditRecorder,
        logger: logging.Logger,
        export_max_records: int = EXPORT_HARD_LIMIT,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._repository = repository
        self._directory = directory
        self._recorder = recorder
        self._logger = logger
        self._export_max = min(export_max_records, EXPORT_HARD_LIMIT)
        self._clock = clock

    def _read_failed(self, operation: str, error: Exception, message: str) -> AuditReadError:
        self._logger.error(
            "audit_read_failed",
            extra={"operation": operation, "error": str(error)},
        )
        return AuditReadError(message)

    async def list_logs(
        self,
        query: AuditLogQuery,
        actor: Actor,
        metadata: RecordMetadata,
    ) -> AuditLogListResponse:
        filters = filters_from(query)
        pagination = Pagination(
            page=query.page,
            limit=query.limit,
            sort_by=query.sort_by,
            sort_order=query.sort_order,
        )
        try:
            page = await self._repository.query(filters, pagination)
        except AuditStoreError as e:
            raise self._read_failed("list", e, "Failed to retrieve audit logs") from e

        await self._recorder.create(
            build_access_record(
                actor.id,
                "View audit logs",
                f"Retrieved {len(page.records)} audit logs with filters",
                replace(metadata, extra={**metadata.extra, "filters": filters.to_dict()}),
            )
        )
        return AuditLogListResponse(
            logs=[AuditRecordResponse.from_record(r) for r in page.records],
            pagination=PaginationInfo(
                page=page.page,
                limit=page.limit,
                total=page.total,
                pages=page.pages,
            ),
        )

    async def get_log(self, record_id: str) -> AuditRecordDetailResponse:
        """One record, with the records it links to resolved. Purged links are omitted."""
        rid = validate_record_id(record_id)
        try:
            record = await self._repository.get(rid)
            if record is None:
                raise NotFoundError("Audit log not found")
            related = await self._repository.get_many(record.related_logs)
        except AuditStoreError as e:
            raise self._read_failed("get", e, "Failed to retrieve audit log") from e
        return AuditRecordDetailResponse.with_related(record, related)

    async def export_logs(
        self,
        query: AuditExportQuery,
        actor: Actor,
        metadata: RecordMetadata,
    ) -> Union[CsvExport, JsonExportResponse]:
        """Unpaged export up to the configured ceiling, newest first. Writes one DATA_EXPORT record."""
        filters = filters_from(query)
        pagination = Pagination(page=1, limit=self._export_max)
        try:
            page = await self._repository.query(filters, pagination)
            actors = {}
            if query.format == "csv":
                actors = await self._directory.get_many(r.actor for r in page.records)
        except AuditStoreError as e:
            raise self._read_failed("export", e, "Failed to export audit logs") from e

        now = self._clock()
        await self._recorder.create(
            build_export_record(
                actor.id,
                query.format,
                len(page.records),
                filters.to_dict(),
                metadata,
            )
        )
        if query.format == "csv":
            return CsvExport(
                content=render_csv(page.records, actors),
                filename=export_filename(now.date()),
            )
        return render_json(page.records, filters.to_dict(), now)

    async def stats(self, query: StatsQuery) -> AuditStatsResponse:
        period = STATS_PERIODS[query.period]
        now = self._clock()
        try:
            snapshot = await self._repository.aggregate_stats(
                since=now - period,
                until=now,
                trend_since=trend_window_start(now, period),
                top_n=TOP_ACTORS,
            )
            identities = await self._directory.get_many(a for a, _ in snapshot.top_actors)
        except AuditStoreError as e:
            raise self._read_failed("stats", e, "Failed to retrieve audit statistics") from e

        return AuditStatsResponse(
            period=query.period,
            overview=StatsOverview(
                total_operations=snapshot.total,
                failed_operations=snapshot.failed,
                success_rate=success_rate(snapshot.total, snapshot.failed),
            ),
            action_type_stats=[CountBucket(key=k, count=n) for k, n in snapshot.by_action_type],
            resource_stats=[CountBucket(key=k, count=n) for k, n in snapshot.by_resource],
            severity_stats=[CountBucket(key=k, count=n) for k, n in snapshot.by_severity],
            top_users=[
                TopActor(user=_summary(a, identities.get(a)), count=n)
                for a, n in snapshot.top_actors
            ],
            daily_activity=[DailyCount(date=d.isoformat(), count=n) for d, n in snapshot.daily],
        )

    async def timeline(
        self,
        user_id: str,
        query: TimelineQuery,
        actor: Actor,
        metadata: RecordMetadata,
    ) -> TimelineResponse:
        validate_object_id(user_id, field="userId")
        try:
            identity = await self._directory.get(user_id)
            if identity is None:
                raise NotFoundError("User not found")
            page = await self._repository.query(
                AuditFilters(actor_id=user_id),
                Pagination(page=1, limit=query.limit),
            )
        except AuditStoreError as e:
            raise self._read_failed("timeline", e, "Failed to retrieve user activity timeline") from e

        await self._recorder.create(
            build_access_record(
                actor.id,
                "View user activity timeline",
                f"Viewed activity timeline for user: {identity.name or identity.id}",
                metadata,
                resource=Resource.USER,
                resource_id=user_id,
            )
        )
        return TimelineResponse(
            user=_summary(user_id, identity),
            timeline=[AuditRecordResponse.from_record(r) for r in page.records],
            total_logs=page.total,
        )
