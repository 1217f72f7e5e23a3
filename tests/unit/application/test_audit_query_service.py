"""AuditQueryService: listing, lookup, export, stats, timeline."""

import csv
import io
import logging
from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock
from uuid import UUID

import pytest

from audit_trail.application.audit_query_service import (
    AuditQueryService,
    CsvExport,
    success_rate,
    trend_window_start,
)
from audit_trail.application.exceptions import AuditReadError, NotFoundError
from audit_trail.audit.exceptions import AuditStoreError
from audit_trail.audit.repository import AuditFilters, Pagination
from audit_trail.domain.exceptions import DomainValidationError
from audit_trail.domain.models.audit_record import ActionType, AuditStatus, Resource, RiskLevel, Severity
from audit_trail.domain.schemas.audit import (
    AuditExportQuery,
    AuditLogQuery,
    StatsQuery,
    TimelineQuery,
)

ADMIN_ID = "64a1f0c2e4b0a1b2c3d4e5f6"
USER_ID = "64a1f0c2e4b0a1b2c3d4e5f8"


async def _all(repository):
    return (await repository.query(AuditFilters(), Pagination(limit=1000))).records


@pytest.mark.asyncio
async def test_list_logs_filters_and_writes_access_record(query_service, repository, make_record, admin, metadata, clock):
    for _ in range(12):
        await repository.save(make_record(severity=Severity.CRITICAL))
        clock.advance(seconds=1)
    await repository.save(make_record(severity=Severity.LOW))

    result = await query_service.list_logs(
        AuditLogQuery(severity=Severity.CRITICAL, page=2, limit=10), admin, metadata
    )
    assert len(result.logs) == 2
    assert all(log.severity == Severity.CRITICAL for log in result.logs)
    assert result.pagination.total == 12
    assert result.pagination.pages == 2

    access = [r for r in await _all(repository) if r.action == "View audit logs"]
    assert len(access) == 1
    assert access[0].action_type == ActionType.READ
    assert access[0].actor == admin.id
    assert access[0].metadata.extra["filters"] == {"severity": "CRITICAL"}


@pytest.mark.asyncio
async def test_get_log_found_missing_and_malformed(query_service, repository, make_record):
    saved = await repository.save(make_record())
    found = await query_service.get_log(str(saved.id))
    assert found.id == str(saved.id)

    with pytest.raises(NotFoundError):
        await query_service.get_log("6f9619ff-8b86-d011-b42d-00c04fc964ff")
    with pytest.raises(DomainValidationError):
        await query_service.get_log("nope")


@pytest.mark.asyncio
async def test_get_log_resolves_related_logs(query_service, repository, make_record):
    first = await repository.save(make_record(action_type=ActionType.UPDATE))
    gone = "6f9619ff-8b86-d011-b42d-00c04fc964ff"
    saved = await repository.save(
        make_record(action_type=ActionType.DELETE, related_logs=(first.id, UUID(gone)))
    )

    found = await query_service.get_log(str(saved.id))
    assert found.risk_level == RiskLevel.HIGH
    assert [r.id for r in found.related_logs] == [str(first.id)]
    assert found.related_logs[0].risk_level == RiskLevel.MEDIUM


@pytest.mark.asyncio
async def test_read_failure_is_generic(directory, recorder, admin, metadata):
    repo = AsyncMock()
    repo.query = AsyncMock(side_effect=AuditStoreError("connection refused to 10.1.2.3"))
    service = AuditQueryService(repo, directory, recorder, logging.getLogger("test"))
    with pytest.raises(AuditReadError) as exc:
        await service.list_logs(AuditLogQuery(), admin, metadata)
    assert "10.1.2.3" not in exc.value.message


@pytest.mark.asyncio
async def test_csv_export_matches_query_total(query_service, repository, make_record, seed_users, admin, metadata, clock):
    await seed_users((ADMIN_ID, "Ada, Admin", "ada@example.com", "admin"))
    for i in range(5):
        await repository.save(make_record(details=f'said "hi", #{i}', severity=Severity.HIGH))
    await repository.save(make_record(actor=USER_ID, severity=Severity.HIGH))
    await repository.save(make_record(severity=Severity.LOW))

    total = (await repository.query(AuditFilters(severity=Severity.HIGH), Pagination(limit=1000))).total
    result = await query_service.export_logs(AuditExportQuery(severity=Severity.HIGH), admin, metadata)
    assert isinstance(result, CsvExport)
    assert result.filename == f"audit-logs-{clock.now.date().isoformat()}.csv"
    assert result.media_type == "text/csv"

    rows = list(csv.reader(io.StringIO(result.content)))
    assert rows[0][:3] == ["Date", "User", "Email"]
    assert len(rows) - 1 == total == 6
    by_user = {row[1] for row in rows[1:]}
    assert by_user == {"Ada, Admin", "Unknown"}
    assert 'said "hi", #0' in {row[7] for row in rows[1:]}


@pytest.mark.asyncio
async def test_export_writes_data_export_record(query_service, repository, make_record, admin, metadata):
    await repository.save(make_record())
    await query_service.export_logs(AuditExportQuery(format="json"), admin, metadata)
    exports = [r for r in await _all(repository) if r.action_type == ActionType.DATA_EXPORT]
    assert len(exports) == 1
    assert exports[0].severity == Severity.MEDIUM
    assert exports[0].metadata.extra["recordCount"] == 1
    assert exports[0].metadata.extra["exportFormat"] == "json"


@pytest.mark.asyncio
async def test_json_export_envelope(query_service, repository, make_record, admin, metadata, clock):
    await repository.save(make_record(severity=Severity.HIGH))
    result = await query_service.export_logs(
        AuditExportQuery(format="json", severity=Severity.HIGH), admin, metadata
    )
    body = result.model_dump(mode="json", by_alias=True)
    assert body["exportInfo"]["totalRecords"] == 1
    assert body["exportInfo"]["filters"] == {"severity": "HIGH"}
    assert body["data"][0]["severity"] == "HIGH"
    assert "actionType" in body["data"][0]


@pytest.mark.asyncio
async def test_empty_csv_export_has_header_only(query_service, admin, metadata):
    result = await query_service.export_logs(AuditExportQuery(), admin, metadata)
    assert result.content.strip().splitlines() == [
        "Date,User,Email,Action,Action Type,Resource,Resource ID,Details,Severity,Status,IP Address,User Agent,Method,Endpoint"
    ]


@pytest.mark.asyncio
async def test_stats_seven_day_trend(query_service, repository, make_record, seed_users, clock):
    await seed_users((ADMIN_ID, "Ada", "ada@example.com", "admin"))
    now = clock.now
    for days_ago, status in [(9, AuditStatus.SUCCESS), (6, AuditStatus.SUCCESS), (6, AuditStatus.FAILED), (0, AuditStatus.SUCCESS)]:
        clock.now = now - timedelta(days=days_ago)
        await repository.save(make_record(status=status))
    clock.now = now

    stats = await query_service.stats(StatsQuery(period="7d"))
    assert stats.overview.total_operations == 3
    assert stats.overview.failed_operations == 1
    assert stats.overview.success_rate == 66.67
    assert len(stats.daily_activity) <= 7
    window_start = (now - timedelta(days=7)).date()
    assert all(date.fromisoformat(d.date) >= window_start for d in stats.daily_activity)
    assert {d.date: d.count for d in stats.daily_activity} == {
        (now - timedelta(days=6)).date().isoformat(): 2,
        now.date().isoformat(): 1,
    }
    assert stats.top_users[0].user.name == "Ada"
    assert stats.top_users[0].count == 3


@pytest.mark.asyncio
async def test_stats_empty_window_success_rate(query_service):
    stats = await query_service.stats(StatsQuery(period="24h"))
    assert stats.overview.total_operations == 0
    assert stats.overview.success_rate == 100.0
    assert stats.daily_activity == []


def test_trend_window_has_at_most_n_day_buckets():
    now = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
    assert trend_window_start(now, timedelta(days=7)) == datetime(2026, 10, 12, tzinfo=timezone.utc)
    assert trend_window_start(now, timedelta(hours=24)) == datetime(2026, 10, 18, tzinfo=timezone.utc)
    assert success_rate(3, 1) == 66.67


@pytest.mark.asyncio
async def test_timeline(query_service, repository, make_record, seed_users, admin, metadata, clock):
    await seed_users((USER_ID, "Uma", "uma@example.com", "user"))
    for _ in range(4):
        await repository.save(make_record(actor=USER_ID))
        clock.advance(minutes=1)
    await repository.save(make_record())

    result = await query_service.timeline(USER_ID, TimelineQuery(limit=3), admin, metadata)
    assert result.user.name == "Uma"
    assert result.total_logs == 4
    assert len(result.timeline) == 3
    times = [r.created_at for r in result.timeline]
    assert times == sorted(times, reverse=True)

    access = [r for r in await _all(repository) if r.action == "View user activity timeline"]
    assert len(access) == 1
    assert access[0].resource == Resource.USER
    assert access[0].resource_id == USER_ID


@pytest.mark.asyncio
async def test_timeline_unknown_actor(query_service, admin, metadata):
    with pytest.raises(NotFoundError):
        await query_service.timeline(USER_ID, TimelineQuery(), admin, metadata)
    with pytest.raises(DomainValidationError):
        await query_service.timeline("bogus", TimelineQuery(), admin, metadata)
