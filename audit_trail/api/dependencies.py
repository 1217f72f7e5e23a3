"""FastAPI dependency injection: request metadata, current actor, role guards, services."""

import logging
from functools import partial
from typing import Annotated, Optional

from fastapi import Depends, Request

from audit_trail.api.interceptor import SESSION_HEADER, client_ip
from audit_trail.application.audit_query_service import AuditQueryService
from audit_trail.application.retention_service import RetentionService
from audit_trail.audit.records import build_access_denied_record
from audit_trail.audit.write_queue import AuditWriteQueue
from audit_trail.domain.models.audit_record import RecordMetadata, Severity
from audit_trail.security.exceptions import AuthenticationError, AuthorizationError
from audit_trail.security.rbac import AUDIT_PURGE_ROLES, AUDIT_READER_ROLES, Actor, RBACService, Role


def request_metadata(request: Request, status_code: Optional[int] = None) -> RecordMetadata:
    """Request context for records written explicitly by handlers and middleware."""
    endpoint = request.url.path
    if request.url.query:
        endpoint = f"{endpoint}?{request.url.query}"
    return RecordMetadata(
        ip_address=client_ip(request.headers, request.client, request.app.state.settings.trust_forwarded_for),
        user_agent=request.headers.get("user-agent", ""),
        method=request.method,
        endpoint=endpoint,
        response_status=status_code,
        session_id=request.headers.get(SESSION_HEADER),
        request_id=getattr(request.state, "correlation_id", None),
    )


def get_write_queue(request: Request) -> AuditWriteQueue:
    return request.app.state.write_queue


def get_current_actor(request: Request) -> Actor:
    """Actor attached by ActorContextMiddleware. Raises AuthenticationError if anonymous."""
    actor = getattr(request.state, "actor", None)
    if actor is None:
        raise AuthenticationError("Not authorized, no token")
    return actor


def require_roles(*roles: Role, denial_severity: Severity):
    """Build a dependency that admits only the given roles. Denials are audited at denial_severity."""
    rbac = RBACService()

    async def dependency(
        request: Request,
        actor: Annotated[Actor, Depends(get_current_actor)],
        write_queue: Annotated[AuditWriteQueue, Depends(get_write_queue)],
    ) -> Actor:
        try:
            rbac.check_roles(actor, roles)
        except AuthorizationError as e:
            write_queue.enqueue(
                partial(
                    build_access_denied_record,
                    actor.id,
                    actor.role.value,
                    tuple(r.value for r in roles),
                    request_metadata(request, status_code=403),
                    denial_severity,
                )
            )
            raise AuthorizationError(
                f"User role {actor.role.value} is not authorized to access this route"
            ) from e
        return actor

    return dependency


require_audit_reader = require_roles(*AUDIT_READER_ROLES, denial_severity=Severity.HIGH)
require_super_admin = require_roles(*AUDIT_PURGE_ROLES, denial_severity=Severity.CRITICAL)


def get_query_service(request: Request) -> AuditQueryService:
    state = request.app.state
    return AuditQueryService(
        repository=state.repository,
        directory=state.directory,
        recorder=state.recorder,
        logger=logging.getLogger("audit_trail.application.query"),
        export_max_records=state.settings.audit_export_max_records,
    )


def get_retention_service(request: Request) -> RetentionService:
    state = request.app.state
    return RetentionService(
        repository=state.repository,
        recorder=state.recorder,
        logger=logging.getLogger("audit_trail.application.retention"),
    )
