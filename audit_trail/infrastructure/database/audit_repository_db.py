"""DB-backed audit record store. Persists immutable records to the audit_logs table."""

from datetime import date, datetime, timezone
from typing import Callable, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import Date, delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.functions import FunctionElement

from audit_trail.audit.exceptions import AuditStoreError
from audit_trail.audit.repository import AuditFilters, AuditPage, AuditStatsSnapshot, Pagination
from audit_trail.domain.models.audit_record import (
    ActionType,
    AuditRecord,
    AuditStatus,
    RecordChanges,
    RecordMetadata,
    Resource,
    Severity,
)
from audit_trail.infrastructure.database.models import AuditLog

_SORT_COLUMNS = {
    "createdAt": AuditLog.created_at,
    "actionType": AuditLog.action_type,
    "resource": AuditLog.resource,
    "severity": AuditLog.severity,
    "status": AuditLog.status,
}

_STORE_ERRORS = (SQLAlchemyError, OSError)


class utc_day(FunctionElement):
    """Calendar day of a timestamp in UTC, computed by the database."""

    type = Date()
    name = "utc_day"
    inherit_cache = True


@compiles(utc_day)
def _utc_day_default(element, compiler, **kw):
    # SQLite and friends: timestamps are stored as UTC already.
    return "date(%s)" % compiler.process(element.clauses, **kw)


@compiles(utc_day, "postgresql")
def _utc_day_postgresql(element, compiler, **kw):
    return "date(timezone('UTC', %s))" % compiler.process(element.clauses, **kw)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored and bound timestamps are UTC; some drivers hand back naive values."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_orm(record: AuditRecord, created_at: datetime) -> AuditLog:
    return AuditLog(
        actor_id=record.actor,
        action=record.action,
        action_type=record.action_type.value,
        resource=record.resource.value,
        resource_id=record.resource_id,
        details=record.details,
        changes=record.changes.to_dict() if record.changes else None,
        metadata_=record.metadata.to_dict(),
        ip_address=record.metadata.ip_address,
        severity=record.severity.value,
        status=record.status.value,
        tags=sorted(record.tags),
        is_system_generated=record.is_system_generated,
        related_logs=[str(r) for r in record.related_logs],
        created_at=created_at,
    )


def _to_record(orm: AuditLog) -> AuditRecord:
    changes = None
    if orm.changes is not None:
        changes = RecordChanges(before=orm.changes.get("before"), after=orm.changes.get("after"))
    return AuditRecord(
        id=orm.id,
        actor=orm.actor_id,
        action=orm.action,
        action_type=ActionType(orm.action_type),
        resource=Resource(orm.resource),
        resource_id=orm.resource_id,
        details=orm.details,
        changes=changes,
        metadata=RecordMetadata.from_dict(orm.metadata_ or {}),
        severity=Severity(orm.severity),
        status=AuditStatus(orm.status),
        tags=frozenset(orm.tags or ()),
        is_system_generated=bool(orm.is_system_generated),
        related_logs=tuple(UUID(str(r)) for r in orm.related_logs or ()),
        created_at=_as_utc(orm.created_at),
    )


def _conditions(filters: AuditFilters) -> list:
    conds = []
    if filters.actor_id:
        conds.append(AuditLog.actor_id == filters.actor_id)
    if filters.action_type:
        conds.append(AuditLog.action_type == filters.action_type.value)
    if filters.resource:
        conds.append(AuditLog.resource == filters.resource.value)
    if filters.severity:
        conds.append(AuditLog.severity == filters.severity.value)
    if filters.status:
        conds.append(AuditLog.status == filters.status.value)
    if filters.date_from:
        conds.append(AuditLog.created_at >= _as_utc(filters.date_from))
    if filters.date_to:
        conds.append(AuditLog.created_at <= _as_utc(filters.date_to))
    return conds


class SqlAuditRepository:
    """
    Append-only audit store over SQLAlchemy async sessions. Implements AuditRepository.
    Each call uses its own session: writers never share state, so concurrent creators
    need no lock. created_at is assigned here, once, from the injected clock.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    async def save(self, record: AuditRecord) -> AuditRecord:
        orm = _to_orm(record, _as_utc(self._clock()))
        try:
            async with self._session_factory() as session:
                session.add(orm)
                await session.commit()
        except _STORE_ERRORS as e:
            raise AuditStoreError(f"Failed to persist audit record: {e}") from e
        return _to_record(orm)

    async def get(self, record_id: UUID) -> Optional[AuditRecord]:
        try:
            async with self._session_factory() as session:
                orm = await session.get(AuditLog, record_id)
        except _STORE_ERRORS as e:
            raise AuditStoreError(f"Failed to load audit record: {e}") from e
        return _to_record(orm) if orm is not None else None

    async def get_many(self, record_ids: Iterable[UUID]) -> List[AuditRecord]:
        ids = list(dict.fromkeys(record_ids))
        if not ids:
            return []
        stmt = (
            select(AuditLog)
            .where(AuditLog.id.in_(ids))
            .order_by(AuditLog.created_at.desc(), AuditLog.id)
        )
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except _STORE_ERRORS as e:
            raise AuditStoreError(f"Failed to load audit records: {e}") from e
        return [_to_record(r) for r in rows]

    async def query(self, filters: AuditFilters, pagination: Pagination) -> AuditPage:
        conds = _conditions(filters)
        column = _SORT_COLUMNS[pagination.sort_by]
        order = column.desc() if pagination.sort_order == "desc" else column.asc()
        stmt = (
            select(AuditLog)
            .where(*conds)
            .order_by(order, AuditLog.created_at.desc(), AuditLog.id)
            .offset(pagination.offset)
            .limit(pagination.limit)
        )
        count_stmt = select(func.count(AuditLog.id)).where(*conds)
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).scalars().all()
                total = (await session.execute(count_stmt)).scalar_one()
        except _STORE_ERRORS as e:
            raise AuditStoreError(f"Failed to query audit records: {e}") from e
        return AuditPage(
            records=[_to_record(r) for r in rows],
            total=total,
            page=pagination.page,
            limit=pagination.limit,
        )

    async def aggregate_stats(
        self,
        since: datetime,
        until: datetime,
        trend_since: datetime,
        top_n: int = 10,
    ) -> AuditStatsSnapshot:
        window = (AuditLog.created_at >= _as_utc(since), AuditLog.created_at <= _as_utc(until))
        try:
            async with self._session_factory() as session:
                total = (
                    await session.execute(select(func.count(AuditLog.id)).where(*window))
                ).scalar_one()
                failed = (
                    await session.execute(
                        select(func.count(AuditLog.id)).where(
                            *window, AuditLog.status == AuditStatus.FAILED.value
                        )
                    )
                ).scalar_one()
                by_action_type = await self._grouped(session, AuditLog.action_type, window)
                by_resource = await self._grouped(session, AuditLog.resource, window)
                by_severity = await self._grouped(session, AuditLog.severity, window)
                top_actors = await self._grouped(
                    session,
                    AuditLog.actor_id,
                    (*window, AuditLog.actor_id.is_not(None)),
                    limit=top_n,
                )
                day = utc_day(AuditLog.created_at)
                daily_rows = (
                    await session.execute(
                        select(day, func.count(AuditLog.id))
                        .where(
                            AuditLog.created_at >= _as_utc(trend_since),
                            AuditLog.created_at <= _as_utc(until),
                        )
                        .group_by(day)
                        .order_by(day)
                    )
                ).all()
        except _STORE_ERRORS as e:
            raise AuditStoreError(f"Failed to aggregate audit records: {e}") from e

        return AuditStatsSnapshot(
            total=total,
            failed=failed,
            by_action_type=by_action_type,
            by_resource=by_resource,
            by_severity=by_severity,
            top_actors=top_actors,
            daily=[(_as_date(d), n) for d, n in daily_rows],
        )

    @staticmethod
    async def _grouped(session: AsyncSession, column, conds, limit: Optional[int] = None) -> List[Tuple[str, int]]:
        count = func.count(AuditLog.id)
        stmt = select(column, count).where(*conds).group_by(column).order_by(count.desc(), column)
        if limit is not None:
            stmt = stmt.limit(limit)
        rows = (await session.execute(stmt)).all()
        return [(key, n) for key, n in rows]

    async def delete_older_than(self, cutoff: datetime) -> int:
        stmt = delete(AuditLog).where(AuditLog.created_at < _as_utc(cutoff))
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                await session.commit()
        except _STORE_ERRORS as e:
            raise AuditStoreError(f"Failed to delete audit records: {e}") from e
        return result.rowcount or 0
