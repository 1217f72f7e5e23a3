"""API middleware: correlation ID, actor context (trusted gateway headers), rate limiting."""

import logging
import uuid
from functools import partial

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from audit_trail.api.dependencies import request_metadata
from audit_trail.audit.records import build_failed_login_record, build_rate_limit_record
from audit_trail.audit.write_queue import AuditWriteQueue
from audit_trail.core.context import actor_id_ctx, correlation_id_ctx
from audit_trail.domain.schemas.audit import OBJECT_ID_PATTERN
from audit_trail.scalability.rate_limiter import ClientRateLimiter
from audit_trail.security.rbac import Actor, Role

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"
ACTOR_ID_HEADER = "X-Actor-ID"
ACTOR_ROLE_HEADER = "X-Actor-Role"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Generate or preserve correlation ID; attach to request.state, response header, and logging context."""

    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        correlation_id_ctx.set(correlation_id)

        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response


class ActorContextMiddleware(BaseHTTPMiddleware):
    """
    Resolve the actor from X-Actor-ID / X-Actor-Role set by the trusted gateway.
    No headers: anonymous. Malformed headers: 401 and a failed-authentication record.
    """

    def __init__(self, app, write_queue: AuditWriteQueue) -> None:
        super().__init__(app)
        self.write_queue = write_queue

    async def dispatch(self, request: Request, call_next) -> Response:
        actor_id = request.headers.get(ACTOR_ID_HEADER)
        role = request.headers.get(ACTOR_ROLE_HEADER)
        request.state.actor = None

        if actor_id is None and role is None:
            return await call_next(request)

        if not actor_id or not OBJECT_ID_PATTERN.match(actor_id):
            return self._reject(request, "Invalid actor id")
        try:
            actor = Actor(id=actor_id, role=Role((role or "").strip().lower()))
        except ValueError:
            return self._reject(request, "Invalid actor role")

        request.state.actor = actor
        actor_id_ctx.set(actor.id)
        return await call_next(request)

    def _reject(self, request: Request, reason: str) -> Response:
        logger.warning("actor_authentication_failed", extra={"reason": reason, "path": request.url.path})
        self.write_queue.enqueue(
            partial(build_failed_login_record, request_metadata(request, status_code=401), reason)
        )
        return JSONResponse(status_code=401, content={"detail": "Not authorized, token failed"})


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-client-IP rate limit. Violations get 429 and, for known actors, an audit record. Fails open."""

    def __init__(self, app, limiter: ClientRateLimiter, write_queue: AuditWriteQueue) -> None:
        super().__init__(app)
        self.limiter = limiter
        self.write_queue = write_queue

    async def dispatch(self, request: Request, call_next) -> Response:
        metadata = request_metadata(request, status_code=429)
        try:
            allowed = await self.limiter.allow_request(metadata.ip_address)
        except Exception as e:
            logger.error("rate_limit_backend_unavailable", extra={"error": str(e)})
            allowed = True

        if allowed:
            return await call_next(request)

        actor = getattr(request.state, "actor", None)
        if actor is not None:
            self.write_queue.enqueue(partial(build_rate_limit_record, actor.id, metadata))
        return JSONResponse(
            status_code=429,
            content={"detail": "Too many requests from this IP, please try again later."},
            headers={"Retry-After": str(self.limiter.window_seconds)},
        )
