# Application layer: services that orchestrate the audit store and actor directory.

from audit_trail.application.actor_directory import ActorDirectory, ActorIdentity
from audit_trail.application.audit_query_service import AuditQueryService, CsvExport
from audit_trail.application.exceptions import (
    ApplicationError,
    AuditReadError,
    NotFoundError,
    RetentionCleanupError,
)
from audit_trail.application.retention_service import RetentionService

__all__ = [
    "ActorDirectory",
    "ActorIdentity",
    "AuditQueryService",
    "CsvExport",
    "ApplicationError",
    "AuditReadError",
    "NotFoundError",
    "RetentionCleanupError",
    "RetentionService",
]
