"""Audit record builders. Turn observed requests and explicit actions into immutable AuditRecords."""

import json
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Optional

from audit_trail.audit.classifier import action_type_for, classify
from audit_trail.audit.redactor import redact
from audit_trail.domain.models.audit_record import (
    ACTION_MAX_LENGTH,
    DETAILS_MAX_LENGTH,
    ActionType,
    AuditRecord,
    AuditStatus,
    RecordChanges,
    RecordMetadata,
    Resource,
    Severity,
)
from audit_trail.domain.models.policy import PolicyStatus, validate_policy_transition

HIGH_RISK_TAG = "high-risk"
RETENTION_TAG = "retention"

_POLICY_TRANSITION_ACTIONS = {
    PolicyStatus.PUBLISHED: (ActionType.POLICY_PUBLISH, "Publish policy", "Published policy"),
    PolicyStatus.ARCHIVED: (ActionType.POLICY_ARCHIVE, "Archive policy", "Archived policy"),
}


@dataclass(frozen=True)
class ResponseCompleted:
    """Immutable snapshot of a request whose response has been fully sent."""

    method: str
    path: str
    endpoint: str
    status_code: int
    execution_time_ms: float
    ip_address: str
    user_agent: str
    actor_id: Optional[str] = None
    actor_role: Optional[str] = None
    session_id: Optional[str] = None
    request_id: Optional[str] = None
    content_type: str = ""
    body: bytes = b""
    query_params: Dict[str, str] = field(default_factory=dict)


def _truncate(value: Optional[str], limit: int) -> Optional[str]:
    if value is None or len(value) <= limit:
        return value
    return value[: limit - 3] + "..."


def decode_body(body: bytes, content_type: str) -> Any:
    """Best-effort JSON decode of a captured request body. Anything else is not embedded."""
    if not body or "json" not in content_type.lower():
        return None
    try:
        return json.loads(body)
    except (UnicodeDecodeError, ValueError):
        return None


def _event_metadata(event: ResponseCompleted) -> RecordMetadata:
    extra: Dict[str, Any] = {}
    request_body = redact(decode_body(event.body, event.content_type))
    if request_body is not None:
        extra["requestBody"] = request_body
    if event.query_params:
        extra["queryParams"] = dict(event.query_params)
    return RecordMetadata(
        ip_address=event.ip_address,
        user_agent=event.user_agent,
        method=event.method,
        endpoint=event.endpoint,
        response_status=event.status_code,
        execution_time_ms=round(event.execution_time_ms, 3),
        session_id=event.session_id,
        request_id=event.request_id,
        extra=extra,
    )


def build_request_record(event: ResponseCompleted) -> AuditRecord:
    """Normal interceptor record: classification drives type, resource, severity and status."""
    c = classify(event.method, event.path, event.status_code)
    return AuditRecord(
        actor=event.actor_id,
        action=_truncate(f"{event.method} {event.endpoint}", ACTION_MAX_LENGTH),
        action_type=c.action_type,
        resource=c.resource,
        resource_id=c.resource_id,
        details=_truncate(c.description, DETAILS_MAX_LENGTH),
        severity=c.severity,
        status=c.status,
        metadata=_event_metadata(event),
    )


def build_high_risk_record(event: ResponseCompleted) -> AuditRecord:
    """High-risk path record: always CRITICAL, independent of sampling policy."""
    c = classify(event.method, event.path, event.status_code)
    action_type = ActionType.DELETE if event.method.upper() == "DELETE" else ActionType.UPDATE
    return AuditRecord(
        actor=event.actor_id,
        action=_truncate(f"High-risk operation: {event.method} {event.endpoint}", ACTION_MAX_LENGTH),
        action_type=action_type,
        resource=c.resource,
        resource_id=c.resource_id,
        details=f"Performed high-risk operation with status {event.status_code}",
        severity=Severity.CRITICAL,
        status=AuditStatus.FAILED if event.status_code >= 400 else AuditStatus.SUCCESS,
        tags=frozenset({HIGH_RISK_TAG}),
        metadata=_event_metadata(event),
    )


def build_failed_login_record(metadata: RecordMetadata, reason: str) -> AuditRecord:
    """Pre-authentication failure: the only record kind allowed without an actor."""
    return AuditRecord(
        actor=None,
        action="Failed authentication attempt",
        action_type=ActionType.LOGIN,
        resource=Resource.SYSTEM,
        details=_truncate(reason, DETAILS_MAX_LENGTH),
        severity=Severity.MEDIUM,
        status=AuditStatus.FAILED,
        metadata=metadata,
    )


def build_access_denied_record(
    actor_id: str,
    actor_role: str,
    required_roles: tuple,
    metadata: RecordMetadata,
    severity: Severity,
) -> AuditRecord:
    return AuditRecord(
        actor=actor_id,
        action="Unauthorized access attempt",
        action_type=ActionType.READ,
        resource=Resource.SYSTEM,
        details=_truncate(
            f"User with role {actor_role} attempted to access {metadata.endpoint}",
            DETAILS_MAX_LENGTH,
        ),
        severity=severity,
        status=AuditStatus.FAILED,
        metadata=replace(
            metadata,
            extra={**metadata.extra, "requiredRoles": list(required_roles), "userRole": actor_role},
        ),
    )


def build_rate_limit_record(actor_id: str, metadata: RecordMetadata) -> AuditRecord:
    return AuditRecord(
        actor=actor_id,
        action="Rate limit exceeded",
        action_type=action_type_for(metadata.method or "GET"),
        resource=Resource.SYSTEM,
        details=f"Rate limit exceeded for IP: {metadata.ip_address}",
        severity=Severity.MEDIUM,
        status=AuditStatus.FAILED,
        metadata=metadata,
    )


def build_access_record(
    actor_id: str,
    action: str,
    details: str,
    metadata: RecordMetadata,
    resource: Resource = Resource.SYSTEM,
    resource_id: Optional[str] = None,
) -> AuditRecord:
    """Explicit READ record for access to sensitive views (audit listings, timelines)."""
    return AuditRecord(
        actor=actor_id,
        action=_truncate(action, ACTION_MAX_LENGTH),
        action_type=ActionType.READ,
        resource=resource,
        resource_id=resource_id,
        details=_truncate(details, DETAILS_MAX_LENGTH),
        severity=Severity.LOW,
        status=AuditStatus.SUCCESS,
        metadata=metadata,
    )


def build_export_record(
    actor_id: str,
    export_format: str,
    record_count: int,
    filters: Dict[str, Any],
    metadata: RecordMetadata,
) -> AuditRecord:
    return AuditRecord(
        actor=actor_id,
        action="Export audit logs",
        action_type=ActionType.DATA_EXPORT,
        resource=Resource.SYSTEM,
        details=f"Exported {record_count} audit logs to {export_format.upper()}",
        severity=Severity.MEDIUM,
        status=AuditStatus.SUCCESS,
        metadata=replace(
            metadata,
            extra={
                **metadata.extra,
                "exportFormat": export_format,
                "recordCount": record_count,
                "filters": filters,
            },
        ),
    )


def build_purge_record(
    actor_id: str,
    deleted_count: int,
    cutoff: datetime,
    older_than_days: int,
    metadata: RecordMetadata,
) -> AuditRecord:
    """Describes a completed retention purge. Written after the delete so it cannot purge itself."""
    return AuditRecord(
        actor=actor_id,
        action="Cleanup audit logs",
        action_type=ActionType.DELETE,
        resource=Resource.SYSTEM,
        details=f"Deleted {deleted_count} audit logs older than {older_than_days} days",
        severity=Severity.HIGH,
        status=AuditStatus.SUCCESS,
        tags=frozenset({RETENTION_TAG}),
        is_system_generated=True,
        metadata=replace(
            metadata,
            extra={
                **metadata.extra,
                "deletedCount": deleted_count,
                "cutoffDate": cutoff.isoformat(),
            },
        ),
    )


def build_policy_transition_record(
    actor_id: str,
    policy_id: str,
    title: str,
    current: PolicyStatus,
    new: PolicyStatus,
    metadata: RecordMetadata,
    changed_at: Optional[datetime] = None,
) -> AuditRecord:
    """
    One UPDATE-class record per policy status transition, with the status fields
    captured in changes.before/after. Raises InvalidStatusTransitionError for reverse moves.
    """
    validate_policy_transition(current, new)
    action_type, action, verb = _POLICY_TRANSITION_ACTIONS[new]
    before: Dict[str, Any] = {"status": current.value}
    after: Dict[str, Any] = {"status": new.value}
    if new == PolicyStatus.PUBLISHED and changed_at is not None:
        after["publishedDate"] = changed_at.isoformat()
    if new == PolicyStatus.ARCHIVED:
        before["isArchived"] = False
        after["isArchived"] = True
    return AuditRecord(
        actor=actor_id,
        action=action,
        action_type=action_type,
        resource=Resource.POLICY,
        resource_id=policy_id,
        details=_truncate(f"{verb}: {title}", DETAILS_MAX_LENGTH),
        changes=RecordChanges(before=before, after=after),
        severity=Severity.MEDIUM,
        status=AuditStatus.SUCCESS,
        metadata=metadata,
    )
