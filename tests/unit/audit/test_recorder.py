"""AuditRecorder: validation, best-effort persistence, failure routing."""

import logging
from unittest.mock import AsyncMock

import pytest

from audit_trail.audit.exceptions import AuditRecordValidationError, AuditStoreError
from audit_trail.audit.recorder import AuditRecorder, validate_record
from audit_trail.domain.models.audit_record import ActionType, AuditStatus, RecordMetadata
from audit_trail.observability.metrics import (
    RECORDS_REJECTED,
    RECORDS_WRITTEN,
    WRITE_FAILURES,
    MetricsCollector,
)


@pytest.fixture
def failure_channel():
    channel = AsyncMock()
    channel.report = AsyncMock(return_value=None)
    return channel


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.mark.asyncio
async def test_create_persists_and_assigns_id(repository, failure_channel, metrics, make_record, clock):
    recorder = AuditRecorder(repository, failure_channel, logging.getLogger("test"), metrics=metrics)
    stored = await recorder.create(make_record())
    assert stored is not None
    assert stored.id is not None
    assert stored.created_at == clock.now
    assert metrics.counter(RECORDS_WRITTEN) == 1
    failure_channel.report.assert_not_called()


@pytest.mark.asyncio
async def test_missing_actor_rejected_unless_failed_login(repository, failure_channel, metrics, make_record):
    recorder = AuditRecorder(repository, failure_channel, logging.getLogger("test"), metrics=metrics)
    assert await recorder.create(make_record(actor=None)) is None
    failure_channel.report.assert_awaited_once()
    assert failure_channel.report.await_args.kwargs["rejected"] is True

    stored = await recorder.create(
        make_record(actor=None, action_type=ActionType.LOGIN, status=AuditStatus.FAILED)
    )
    assert stored is not None
    assert stored.actor is None


@pytest.mark.asyncio
async def test_store_failure_never_raises(failure_channel, metrics, make_record):
    repo = AsyncMock()
    repo.save = AsyncMock(side_effect=AuditStoreError("db down"))
    recorder = AuditRecorder(repo, failure_channel, logging.getLogger("test"), metrics=metrics)
    assert await recorder.create(make_record()) is None
    failure_channel.report.assert_awaited_once()
    assert metrics.counter(RECORDS_WRITTEN) == 0


@pytest.mark.asyncio
async def test_unexpected_store_error_never_raises(failure_channel, make_record):
    repo = AsyncMock()
    repo.save = AsyncMock(side_effect=RuntimeError("boom"))
    recorder = AuditRecorder(repo, failure_channel, logging.getLogger("test"))
    assert await recorder.create(make_record()) is None


def test_validate_requires_ip_and_user_agent(make_record):
    with pytest.raises(AuditRecordValidationError):
        validate_record(make_record(metadata=RecordMetadata(ip_address="", user_agent="ua")))
    with pytest.raises(AuditRecordValidationError):
        validate_record(make_record(metadata=RecordMetadata(ip_address="1.2.3.4", user_agent="")))


def test_validate_length_bounds(make_record):
    with pytest.raises(AuditRecordValidationError):
        validate_record(make_record(action="x" * 101))
    with pytest.raises(AuditRecordValidationError):
        validate_record(make_record(details="x" * 1001))
    validate_record(make_record(action="x" * 100, details="x" * 1000))


@pytest.mark.asyncio
async def test_rejected_metric_counted(repository, metrics, make_record):
    from audit_trail.audit.failure_channel import FailureChannel

    channel = FailureChannel(logging.getLogger("test"), metrics=metrics)
    recorder = AuditRecorder(repository, channel, logging.getLogger("test"), metrics=metrics)
    await recorder.create(make_record(actor=None))
    assert metrics.counter(RECORDS_REJECTED) == 1
    assert metrics.counter(WRITE_FAILURES) == 0
