"""Audit core: classification, redaction, record building, best-effort persistence, detached writes. No FastAPI."""

from audit_trail.audit.classifier import Classification, classify
from audit_trail.audit.failure_channel import FailureChannel
from audit_trail.audit.recorder import AuditRecorder
from audit_trail.audit.redactor import REDACTION_MARKER, redact
from audit_trail.audit.repository import AuditFilters, AuditPage, AuditRepository, Pagination
from audit_trail.audit.write_queue import AuditWriteQueue

__all__ = [
    "AuditFilters",
    "AuditPage",
    "AuditRecorder",
    "AuditRepository",
    "AuditWriteQueue",
    "Classification",
    "FailureChannel",
    "Pagination",
    "REDACTION_MARKER",
    "classify",
    "redact",
]
