"""Side error channel for audit writes that could not be persisted. Never raises."""

import logging
from typing import Optional, Protocol

from audit_trail.domain.models.audit_record import AuditRecord
from audit_trail.observability.metrics import RECORDS_REJECTED, WRITE_FAILURES, MetricsCollector

ROUTING_WRITE_FAILED = "audit.write_failed"


class FailurePublisher(Protocol):
    async def publish(
        self,
        exchange_name: str,
        routing_key: str,
        message: dict,
        message_id: str,
    ) -> None:
        ...


class FailureChannel:
    """
    Receives records the store rejected or failed to persist.
    Logs at ERROR with the (already redacted) record, counts it, and optionally
    dead-letters it to a message broker for replay. Publishing is best-effort.
    """

    def __init__(
        self,
        logger: logging.Logger,
        metrics: Optional[MetricsCollector] = None,
        publisher: Optional[FailurePublisher] = None,
        exchange_name: str = "audit_failures",
    ) -> None:
        self._logger = logger
        self._metrics = metrics
        self._publisher = publisher
        self._exchange = exchange_name

    async def report(
        self,
        record: Optional[AuditRecord],
        error: BaseException,
        *,
        rejected: bool = False,
    ) -> None:
        payload = record.to_dict() if record is not None else None
        self._logger.error(
            "audit_record_rejected" if rejected else "audit_write_failed",
            extra={
                "error": str(error),
                "error_type": type(error).__name__,
                "record": payload,
            },
        )
        if self._metrics:
            self._metrics.increment(RECORDS_REJECTED if rejected else WRITE_FAILURES)
        if self._publisher is None or payload is None:
            return
        try:
            await self._publisher.publish(
                self._exchange,
                ROUTING_WRITE_FAILED,
                {"record": payload, "error": str(error), "rejected": rejected},
                payload.get("metadata", {}).get("requestId") or "",
            )
        except Exception as e:
            self._logger.error(
                "audit_failure_publish_failed",
                extra={"error": str(e), "exchange": self._exchange},
            )
