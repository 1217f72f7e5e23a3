"""FailureChannel: logs, counts and optionally dead-letters failed audit writes."""

import logging
from unittest.mock import AsyncMock

import pytest

from audit_trail.audit.failure_channel import ROUTING_WRITE_FAILED, FailureChannel
from audit_trail.audit.exceptions import AuditStoreError
from audit_trail.observability.metrics import WRITE_FAILURES, MetricsCollector


@pytest.mark.asyncio
async def test_report_logs_and_counts(make_record, caplog):
    metrics = MetricsCollector()
    channel = FailureChannel(logging.getLogger("audit_test"), metrics=metrics)
    with caplog.at_level(logging.ERROR, logger="audit_test"):
        await channel.report(make_record(), AuditStoreError("db down"))
    assert metrics.counter(WRITE_FAILURES) == 1
    assert any(r.getMessage() == "audit_write_failed" for r in caplog.records)


@pytest.mark.asyncio
async def test_report_publishes_record(make_record, mock_publisher):
    channel = FailureChannel(logging.getLogger("test"), publisher=mock_publisher, exchange_name="dead_audit")
    await channel.report(make_record(), AuditStoreError("db down"))
    mock_publisher.publish.assert_awaited_once()
    args = mock_publisher.publish.await_args.args
    assert args[0] == "dead_audit"
    assert args[1] == ROUTING_WRITE_FAILED
    assert args[2]["record"]["actionType"] == "READ"
    assert args[2]["error"] == "db down"


@pytest.mark.asyncio
async def test_publish_failure_swallowed(make_record):
    publisher = AsyncMock()
    publisher.publish = AsyncMock(side_effect=ConnectionError("broker down"))
    channel = FailureChannel(logging.getLogger("test"), publisher=publisher)
    await channel.report(make_record(), AuditStoreError("db down"))
    publisher.publish.assert_awaited_once()


@pytest.mark.asyncio
async def test_report_without_record_does_not_publish(mock_publisher):
    channel = FailureChannel(logging.getLogger("test"), publisher=mock_publisher)
    await channel.report(None, ValueError("build failed"))
    mock_publisher.publish.assert_not_called()
