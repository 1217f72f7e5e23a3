"""Domain models. Pure business entities."""

from audit_trail.domain.models.audit_record import (
    ActionType,
    AuditRecord,
    AuditStatus,
    RecordChanges,
    RecordMetadata,
    Resource,
    RiskLevel,
    Severity,
)
from audit_trail.domain.models.policy import PolicyStatus, validate_policy_transition

__all__ = [
    "ActionType",
    "AuditRecord",
    "AuditStatus",
    "PolicyStatus",
    "RecordChanges",
    "RecordMetadata",
    "Resource",
    "RiskLevel",
    "Severity",
    "validate_policy_transition",
]
