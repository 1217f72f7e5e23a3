"""Detached audit writes: bounded queue drained by background workers. Enqueue never blocks the request path."""

import asyncio
import logging
from typing import Callable, List, Optional

from audit_trail.audit.failure_channel import FailureChannel
from audit_trail.audit.recorder import AuditRecorder
from audit_trail.domain.models.audit_record import AuditRecord
from audit_trail.observability.metrics import JOBS_DROPPED, MetricsCollector

RecordBuilder = Callable[[], Optional[AuditRecord]]


class AuditWriteQueue:
    """
    Bounded queue of record-build jobs. Workers start lazily on first enqueue,
    build the record (classification and redaction happen here, off the response
    path) and hand it to the recorder. A full queue drops the job and reports it.
    On shutdown, drain() waits up to a timeout; jobs still pending are dropped and counted.
    """

    def __init__(
        self,
        recorder: AuditRecorder,
        failure_channel: FailureChannel,
        logger: logging.Logger,
        max_queued: int = 1000,
        workers: int = 2,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self._recorder = recorder
        self._failures = failure_channel
        self._logger = logger
        self._metrics = metrics
        self._worker_count = max(1, workers)
        self._queue: asyncio.Queue[RecordBuilder] = asyncio.Queue(maxsize=max_queued)
        self._workers: List[asyncio.Task[None]] = []
        self._closed = False

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_workers(self) -> None:
        self._workers = [w for w in self._workers if not w.done()]
        while len(self._workers) < self._worker_count:
            self._workers.append(asyncio.create_task(self._run_worker()))

    def _drop(self, reason: str) -> None:
        self._logger.error("audit_job_dropped", extra={"reason": reason})
        if self._metrics:
            self._metrics.increment(JOBS_DROPPED)

    def enqueue(self, build: RecordBuilder) -> bool:
        """Schedule a record build. Returns False if the job was dropped."""
        if self._closed:
            self._drop("queue_closed")
            return False
        self._ensure_workers()
        try:
            self._queue.put_nowait(build)
        except asyncio.QueueFull:
            self._drop("queue_full")
            return False
        return True

    async def _run_worker(self) -> None:
        while True:
            build = await self._queue.get()
            try:
                try:
                    record = build()
                except Exception as e:
                    await self._failures.report(None, e)
                    continue
                if record is not None:
                    await self._recorder.create(record)
            finally:
                self._queue.task_done()

    async def join(self) -> None:
        """Wait until every enqueued job has been processed."""
        await self._queue.join()

    async def drain(self, timeout: float) -> int:
        """Stop accepting jobs, wait up to timeout for pending ones, then stop workers. Returns jobs dropped."""
        self._closed = True
        dropped = 0
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            dropped = self._queue.qsize()
            self._logger.warning("audit_queue_drain_timeout", extra={"dropped": dropped})
            if self._metrics and dropped:
                self._metrics.increment(JOBS_DROPPED, dropped)
        finally:
            for worker in self._workers:
                worker.cancel()
            await asyncio.gather(*self._workers, return_exceptions=True)
            self._workers = []
        return dropped
