"""AuditWriteQueue: detached writes, overflow drops, bounded drain."""

import asyncio
import logging
from functools import partial
from unittest.mock import AsyncMock

import pytest

from audit_trail.audit.write_queue import AuditWriteQueue
from audit_trail.observability.metrics import JOBS_DROPPED, MetricsCollector


def _queue(recorder, failure_channel=None, **kwargs):
    failure_channel = failure_channel or AsyncMock()
    return AuditWriteQueue(recorder, failure_channel, logging.getLogger("test"), **kwargs)


@pytest.mark.asyncio
async def test_enqueued_build_reaches_recorder(make_record):
    recorder = AsyncMock()
    queue = _queue(recorder, workers=1)
    record = make_record()
    assert queue.enqueue(lambda: record) is True
    await queue.join()
    recorder.create.assert_awaited_once_with(record)
    await queue.drain(timeout=1)


@pytest.mark.asyncio
async def test_full_queue_drops_without_raising(make_record):
    recorder = AsyncMock()
    metrics = MetricsCollector()
    queue = _queue(recorder, max_queued=1, workers=1, metrics=metrics)
    record = make_record()
    # No await between enqueues: the worker has not taken the first job yet.
    assert queue.enqueue(lambda: record) is True
    assert queue.enqueue(lambda: record) is False
    assert metrics.counter(JOBS_DROPPED) == 1
    await queue.join()
    await queue.drain(timeout=1)


@pytest.mark.asyncio
async def test_build_failure_reported_and_worker_survives(make_record):
    recorder = AsyncMock()
    failures = AsyncMock()
    queue = _queue(recorder, failures, workers=1)

    def broken():
        raise ValueError("cannot build")

    record = make_record()
    queue.enqueue(broken)
    queue.enqueue(partial(lambda r: r, record))
    await queue.join()
    failures.report.assert_awaited_once()
    recorder.create.assert_awaited_once_with(record)
    await queue.drain(timeout=1)


@pytest.mark.asyncio
async def test_none_build_result_is_skipped():
    recorder = AsyncMock()
    queue = _queue(recorder, workers=1)
    queue.enqueue(lambda: None)
    await queue.join()
    recorder.create.assert_not_called()
    await queue.drain(timeout=1)


@pytest.mark.asyncio
async def test_drain_timeout_drops_pending(make_record):
    release = asyncio.Event()

    async def slow_create(record):
        await release.wait()

    recorder = AsyncMock()
    recorder.create = AsyncMock(side_effect=slow_create)
    metrics = MetricsCollector()
    queue = _queue(recorder, workers=1, metrics=metrics)
    record = make_record()
    for _ in range(3):
        queue.enqueue(lambda: record)
    await asyncio.sleep(0)
    dropped = await queue.drain(timeout=0.05)
    assert dropped == 2
    assert metrics.counter(JOBS_DROPPED) == 2
    assert queue.closed
    assert queue.enqueue(lambda: record) is False


@pytest.mark.asyncio
async def test_drain_completes_pending_within_timeout(make_record):
    recorder = AsyncMock()
    queue = _queue(recorder, workers=2)
    record = make_record()
    for _ in range(5):
        queue.enqueue(lambda: record)
    dropped = await queue.drain(timeout=1)
    assert dropped == 0
    assert recorder.create.await_count == 5
