"""RetentionService: purge then exactly one purge record, failures surfaced."""

import logging
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from audit_trail.application.exceptions import RetentionCleanupError
from audit_trail.application.retention_service import RetentionService
from audit_trail.audit.exceptions import AuditStoreError
from audit_trail.audit.repository import AuditFilters, Pagination
from audit_trail.domain.models.audit_record import ActionType, Resource, Severity
from audit_trail.security.rbac import Actor, Role

SUPER = Actor("64a1f0c2e4b0a1b2c3d4e5f7", Role.SUPER_ADMIN)


@pytest.mark.asyncio
async def test_cleanup_deletes_old_and_writes_one_purge_record(retention_service, repository, make_record, metadata, clock):
    now = clock.now
    clock.now = now - timedelta(days=400)
    for _ in range(3):
        await repository.save(make_record())
    clock.now = now - timedelta(days=10)
    await repository.save(make_record())
    clock.now = now

    result = await retention_service.cleanup(365, SUPER, metadata)
    assert result.deleted_count == 3
    assert result.cutoff_date == now - timedelta(days=365)
    assert result.message == "Successfully deleted 3 audit logs older than 365 days"

    remaining = (await repository.query(AuditFilters(), Pagination())).records
    purge = [r for r in remaining if r.is_system_generated]
    assert len(remaining) == 2
    assert len(purge) == 1
    assert purge[0].action_type == ActionType.DELETE
    assert purge[0].resource == Resource.SYSTEM
    assert purge[0].severity == Severity.HIGH
    assert purge[0].metadata.extra["deletedCount"] == 3
    assert purge[0].created_at >= result.cutoff_date


@pytest.mark.asyncio
async def test_cleanup_with_nothing_old(retention_service, repository, make_record, metadata):
    await repository.save(make_record())
    result = await retention_service.cleanup(30, SUPER, metadata)
    assert result.deleted_count == 0
    page = await repository.query(AuditFilters(), Pagination())
    assert page.total == 2


@pytest.mark.asyncio
async def test_cleanup_failure_surfaced(metadata):
    repo = AsyncMock()
    recorder = AsyncMock()
    repo.delete_older_than = AsyncMock(side_effect=AuditStoreError("disk full"))
    service = RetentionService(repo, recorder, logging.getLogger("test"))
    with pytest.raises(RetentionCleanupError) as exc:
        await service.cleanup(365, SUPER, metadata)
    assert exc.value.message == "Failed to cleanup audit logs"
    recorder.create.assert_not_called()
