"""Domain model for audit records. Pure business semantics. No ORM or infrastructure."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple
from uuid import UUID

ACTION_MAX_LENGTH = 100
DETAILS_MAX_LENGTH = 1000


class ActionType(str, Enum):
    CREATE = "CREATE"
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    PASSWORD_CHANGE = "PASSWORD_CHANGE"
    ROLE_CHANGE = "ROLE_CHANGE"
    ACCOUNT_ACTIVATE = "ACCOUNT_ACTIVATE"
    ACCOUNT_DEACTIVATE = "ACCOUNT_DEACTIVATE"
    POLICY_PUBLISH = "POLICY_PUBLISH"
    POLICY_ARCHIVE = "POLICY_ARCHIVE"
    POLICY_ACKNOWLEDGE = "POLICY_ACKNOWLEDGE"
    FILE_UPLOAD = "FILE_UPLOAD"
    FILE_DOWNLOAD = "FILE_DOWNLOAD"
    BULK_OPERATION = "BULK_OPERATION"
    SYSTEM_CONFIG = "SYSTEM_CONFIG"
    DATA_EXPORT = "DATA_EXPORT"
    DATA_IMPORT = "DATA_IMPORT"


class Resource(str, Enum):
    USER = "USER"
    POLICY = "POLICY"
    PROJECT = "PROJECT"
    TASK = "TASK"
    SYSTEM = "SYSTEM"
    FILE = "FILE"
    ROLE = "ROLE"


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class AuditStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    WARNING = "WARNING"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


_HIGH_RISK_ACTIONS: FrozenSet[ActionType] = frozenset(
    {
        ActionType.DELETE,
        ActionType.ROLE_CHANGE,
        ActionType.ACCOUNT_DEACTIVATE,
        ActionType.SYSTEM_CONFIG,
    }
)
_MEDIUM_RISK_ACTIONS: FrozenSet[ActionType] = frozenset(
    {
        ActionType.UPDATE,
        ActionType.PASSWORD_CHANGE,
        ActionType.POLICY_PUBLISH,
        ActionType.BULK_OPERATION,
    }
)


@dataclass(frozen=True)
class RecordMetadata:
    """Request context captured with a record. ip_address and user_agent are required."""

    ip_address: str
    user_agent: str
    method: Optional[str] = None
    endpoint: Optional[str] = None
    response_status: Optional[int] = None
    execution_time_ms: Optional[float] = None
    session_id: Optional[str] = None
    request_id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "ipAddress": self.ip_address,
            "userAgent": self.user_agent,
            "method": self.method,
            "endpoint": self.endpoint,
            "responseStatus": self.response_status,
            "executionTimeMs": self.execution_time_ms,
            "sessionId": self.session_id,
            "requestId": self.request_id,
        }
        data.update(self.extra)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecordMetadata":
        known = {
            "ipAddress",
            "userAgent",
            "method",
            "endpoint",
            "responseStatus",
            "executionTimeMs",
            "sessionId",
            "requestId",
        }
        return cls(
            ip_address=data.get("ipAddress") or "",
            user_agent=data.get("userAgent") or "",
            method=data.get("method"),
            endpoint=data.get("endpoint"),
            response_status=data.get("responseStatus"),
            execution_time_ms=data.get("executionTimeMs"),
            session_id=data.get("sessionId"),
            request_id=data.get("requestId"),
            extra={k: v for k, v in data.items() if k not in known},
        )


@dataclass(frozen=True)
class RecordChanges:
    """Opaque before/after snapshots of a tracked resource."""

    before: Any = None
    after: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {"before": self.before, "after": self.after}


@dataclass(frozen=True)
class AuditRecord:
    """
    Immutable audit record: who, what, on which resource, how risky, with what outcome.
    id and created_at are assigned once by the store at persistence time.
    """

    actor: Optional[str]
    action: str
    action_type: ActionType
    resource: Resource
    metadata: RecordMetadata
    severity: Severity = Severity.LOW
    status: AuditStatus = AuditStatus.SUCCESS
    resource_id: Optional[str] = None
    details: Optional[str] = None
    changes: Optional[RecordChanges] = None
    tags: FrozenSet[str] = frozenset()
    is_system_generated: bool = False
    related_logs: Tuple[UUID, ...] = ()
    id: Optional[UUID] = None
    created_at: Optional[datetime] = None

    @property
    def is_failed_login(self) -> bool:
        return self.action_type == ActionType.LOGIN and self.status == AuditStatus.FAILED

    @property
    def risk_level(self) -> RiskLevel:
        """Coarse reviewer-facing risk, derived from severity and action type."""
        if self.severity == Severity.CRITICAL or self.action_type in _HIGH_RISK_ACTIONS:
            return RiskLevel.HIGH
        if self.severity == Severity.HIGH or self.action_type in _MEDIUM_RISK_ACTIONS:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW

    def to_dict(self) -> Dict[str, Any]:
        """Structured representation for JSON logging and the failure channel."""
        return {
            "id": str(self.id) if self.id else None,
            "actor": self.actor,
            "action": self.action,
            "actionType": self.action_type.value,
            "resource": self.resource.value,
            "resourceId": self.resource_id,
            "details": self.details,
            "changes": self.changes.to_dict() if self.changes else None,
            "metadata": self.metadata.to_dict(),
            "severity": self.severity.value,
            "status": self.status.value,
            "tags": sorted(self.tags),
            "isSystemGenerated": self.is_system_generated,
            "riskLevel": self.risk_level.value,
            "relatedLogs": [str(r) for r in self.related_logs],
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
