"""Role-based access control for the audit surface. No FastAPI."""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from audit_trail.security.exceptions import AuthorizationError


class Role(Enum):
    USER = "user"
    MANAGER = "manager"
    ADMIN = "admin"
    SUPER_ADMIN = "super-admin"


# Role          Read/export/stats  Cleanup
# USER          ✗                  ✗
# MANAGER       ✗                  ✗
# ADMIN         ✓                  ✗
# SUPER_ADMIN   ✓                  ✓

AUDIT_READER_ROLES = (Role.ADMIN, Role.SUPER_ADMIN)
AUDIT_PURGE_ROLES = (Role.SUPER_ADMIN,)


@dataclass(frozen=True)
class Actor:
    """The authenticated principal attached to a request by the host's auth layer."""

    id: str
    role: Role


class RBACService:
    """Check an actor's role against an allowed set. Raise AuthorizationError if not permitted."""

    def check_roles(self, actor: Actor, allowed: Iterable[Role]) -> None:
        allowed = tuple(allowed)
        if actor.role not in allowed:
            raise AuthorizationError(
                f"Role {actor.role.value} is not permitted; requires one of "
                f"{', '.join(r.value for r in allowed)}"
            )
