"""Action classification: deterministic, pure mapping of (method, path, status) to audit fields. Never raises."""

import re
from dataclasses import dataclass
from typing import Optional, Tuple

from audit_trail.domain.models.audit_record import ActionType, AuditStatus, Resource, Severity

ADMIN_PATH_MARKER = "/admin/"

_METHOD_ACTIONS = {
    "GET": ActionType.READ,
    "POST": ActionType.CREATE,
    "PUT": ActionType.UPDATE,
    "PATCH": ActionType.UPDATE,
    "DELETE": ActionType.DELETE,
}

# First match wins. Order is part of historical classification semantics; keep it.
_RESOURCE_KEYWORDS: Tuple[Tuple[str, Resource], ...] = (
    ("/users", Resource.USER),
    ("/policies", Resource.POLICY),
    ("/projects", Resource.PROJECT),
    ("/tasks", Resource.TASK),
    ("/audit", Resource.SYSTEM),
)

_RESOURCE_ID_RE = re.compile(r"/([a-fA-F0-9]{24})(?:/|$)")

# method -> (success verb, failure verb)
_VERBS = {
    "GET": ("Retrieved", "Failed to retrieve"),
    "POST": ("Created", "Failed to create"),
    "PUT": ("Updated", "Failed to update"),
    "PATCH": ("Updated", "Failed to update"),
    "DELETE": ("Deleted", "Failed to delete"),
}


@dataclass(frozen=True)
class Classification:
    action_type: ActionType
    resource: Resource
    resource_id: Optional[str]
    severity: Severity
    status: AuditStatus
    description: str


def is_admin_path(path: str) -> bool:
    return ADMIN_PATH_MARKER in path


def action_type_for(method: str) -> ActionType:
    return _METHOD_ACTIONS.get(method.upper(), ActionType.READ)


def resource_for(path: str) -> Resource:
    for keyword, resource in _RESOURCE_KEYWORDS:
        if keyword in path:
            return resource
    return Resource.SYSTEM


def resource_id_for(path: str) -> Optional[str]:
    match = _RESOURCE_ID_RE.search(path)
    return match.group(1) if match else None


def severity_for(action_type: ActionType, path: str) -> Severity:
    if action_type == ActionType.DELETE or is_admin_path(path):
        return Severity.HIGH
    if action_type in (ActionType.CREATE, ActionType.UPDATE):
        return Severity.MEDIUM
    return Severity.LOW


def status_for(response_status: int) -> AuditStatus:
    if response_status >= 400:
        return AuditStatus.FAILED
    if response_status >= 300:
        return AuditStatus.WARNING
    return AuditStatus.SUCCESS


def describe(method: str, path: str, response_status: int) -> str:
    """Past-tense verb plus the resource noun taken from the path's second-to-last segment."""
    parts = [p for p in path.split("/") if p]
    noun = ""
    if len(parts) >= 2:
        noun = parts[-2]
    elif parts:
        noun = parts[-1]
    verbs = _VERBS.get(method.upper())
    if verbs is None:
        verb = "Accessed"
    else:
        verb = verbs[1] if response_status >= 400 else verbs[0]
    return f"{verb} {noun}".strip()


def classify(method: str, path: str, response_status: int) -> Classification:
    action_type = action_type_for(method)
    return Classification(
        action_type=action_type,
        resource=resource_for(path),
        resource_id=resource_id_for(path),
        severity=severity_for(action_type, path),
        status=status_for(response_status),
        description=describe(method, path, response_status),
    )
