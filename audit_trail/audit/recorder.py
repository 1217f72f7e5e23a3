"""Store create semantics: validate, persist, never raise. No FastAPI."""

import logging
import time
from typing import Optional

from audit_trail.audit.exceptions import AuditRecordValidationError
from audit_trail.audit.failure_channel import FailureChannel
from audit_trail.audit.repository import AuditRepository
from audit_trail.domain.models.audit_record import (
    ACTION_MAX_LENGTH,
    DETAILS_MAX_LENGTH,
    AuditRecord,
)
from audit_trail.observability.metrics import RECORDS_WRITTEN, WRITE_LATENCY, MetricsCollector


def validate_record(record: AuditRecord) -> None:
    """Raises AuditRecordValidationError if the record may not be stored."""
    if not record.actor and not record.is_failed_login:
        raise AuditRecordValidationError("actor is required for audit records")
    if not record.metadata.ip_address:
        raise AuditRecordValidationError("metadata.ipAddress is required")
    if not record.metadata.user_agent:
        raise AuditRecordValidationError("metadata.userAgent is required")
    if not record.action or len(record.action) > ACTION_MAX_LENGTH:
        raise AuditRecordValidationError(
            f"action is required and cannot be more than {ACTION_MAX_LENGTH} characters"
        )
    if record.details and len(record.details) > DETAILS_MAX_LENGTH:
        raise AuditRecordValidationError(
            f"details cannot be more than {DETAILS_MAX_LENGTH} characters"
        )
    if record.id is not None or record.created_at is not None:
        raise AuditRecordValidationError("record has already been persisted")


class AuditRecorder:
    """
    Best-effort writer in front of the repository. The audited business action
    succeeds or fails independently of audit-trail health: every failure is routed
    to the failure channel and create() returns None.
    """

    def __init__(
        self,
        repository: AuditRepository,
        failure_channel: FailureChannel,
        logger: logging.Logger,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self._repository = repository
        self._failures = failure_channel
        self._logger = logger
        self._metrics = metrics

    async def create(self, record: AuditRecord) -> Optional[AuditRecord]:
        try:
            validate_record(record)
        except AuditRecordValidationError as e:
            await self._failures.report(record, e, rejected=True)
            return None

        started = time.perf_counter()
        try:
            stored = await self._repository.save(record)
        except Exception as e:
            await self._failures.report(record, e)
            return None

        if self._metrics:
            self._metrics.increment(RECORDS_WRITTEN, severity=stored.severity.value)
            self._metrics.observe_latency(WRITE_LATENCY, (time.perf_counter() - started) * 1000)
        self._logger.info(
            "audit_record_written",
            extra={
                "audit_id": str(stored.id),
                "action_type": stored.action_type.value,
                "severity": stored.severity.value,
                "status": stored.status.value,
            },
        )
        return stored
