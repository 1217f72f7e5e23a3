"""Retention cleanup: bulk purge of old audit records, itself audited."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from audit_trail.application.exceptions import RetentionCleanupError
from audit_trail.audit.exceptions import AuditStoreError
from audit_trail.audit.recorder import AuditRecorder
from audit_trail.audit.records import build_purge_record
from audit_trail.audit.repository import AuditRepository
from audit_trail.domain.models.audit_record import RecordMetadata
from audit_trail.domain.schemas.audit import CleanupResponse
from audit_trail.security.rbac import Actor


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RetentionService:
    """
    One-shot administrative purge. Delete first, then write exactly one purge record
    through the normal create path; its created_at is assigned after the delete, so the
    record postdates the cutoff and survives its own purge.
    Delete failures are surfaced (RetentionCleanupError); the purge record is best-effort.
    """

    def __init__(
        self,
        repository: AuditRepository,
        recorder: AuditRecorder,
        logger: logging.Logger,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._repository = repository
        self._recorder = recorder
        self._logger = logger
        self._clock = clock

    async def cleanup(
        self,
        older_than_days: int,
        actor: Actor,
        metadata: RecordMetadata,
    ) -> CleanupResponse:
        cutoff = self._clock() - timedelta(days=older_than_days)
        try:
            deleted = await self._repository.delete_older_than(cutoff)
        except AuditStoreError as e:
            self._logger.error(
                "audit_cleanup_failed",
                extra={"cutoff": cutoff.isoformat(), "error": str(e)},
            )
            raise RetentionCleanupError("Failed to cleanup audit logs") from e

        self._logger.info(
            "audit_cleanup_completed",
            extra={"deleted_count": deleted, "cutoff": cutoff.isoformat()},
        )
        await self._recorder.create(
            build_purge_record(actor.id, deleted, cutoff, older_than_days, metadata)
        )
        return CleanupResponse(
            message=f"Successfully deleted {deleted} audit logs older than {older_than_days} days",
            deleted_count=deleted,
            cutoff_date=cutoff,
        )
