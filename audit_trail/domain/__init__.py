"""Domain layer: audit record model, policy lifecycle, schemas, validators, exceptions. Pure business logic only."""

from audit_trail.domain.exceptions import (
    DomainError,
    DomainValidationError,
    InvalidStatusTransitionError,
)
from audit_trail.domain.models import (
    ActionType,
    AuditRecord,
    AuditStatus,
    PolicyStatus,
    RecordChanges,
    RecordMetadata,
    Resource,
    Severity,
)

__all__ = [
    "ActionType",
    "AuditRecord",
    "AuditStatus",
    "DomainError",
    "DomainValidationError",
    "InvalidStatusTransitionError",
    "PolicyStatus",
    "RecordChanges",
    "RecordMetadata",
    "Resource",
    "Severity",
]
