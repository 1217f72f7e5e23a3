"""Security: actors, roles, RBAC. No FastAPI."""

from audit_trail.security.exceptions import (
    AuthenticationError,
    AuthorizationError,
    SecurityError,
)
from audit_trail.security.rbac import (
    AUDIT_PURGE_ROLES,
    AUDIT_READER_ROLES,
    Actor,
    RBACService,
    Role,
)

__all__ = [
    "AUDIT_PURGE_ROLES",
    "AUDIT_READER_ROLES",
    "Actor",
    "AuthenticationError",
    "AuthorizationError",
    "RBACService",
    "Role",
    "SecurityError",
]
