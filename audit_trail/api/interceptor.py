"""Request interceptor: pure ASGI middleware that audits completed responses without touching them."""

import ipaddress
import time
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Any, List, MutableMapping, Optional, Tuple

from fastapi import Request
from starlette.datastructures import Headers, QueryParams
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from audit_trail.audit.classifier import is_admin_path
from audit_trail.audit.records import (
    ResponseCompleted,
    build_high_risk_record,
    build_request_record,
)
from audit_trail.audit.write_queue import AuditWriteQueue
from audit_trail.security.rbac import AUDIT_READER_ROLES, Actor

HIGH_RISK_FLAG = "audit_high_risk"
HIGH_RISK_LOGGED_FLAG = "audit_high_risk_logged"
SESSION_HEADER = "X-Session-ID"
IP_ADDRESS_MAX_LENGTH = 64

_MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
_SENSITIVE_SEGMENTS = ("/users/", "/policies/")


class LogLevel(str, Enum):
    ALL = "all"
    ADMIN_ONLY = "admin-only"
    HIGH_RISK_ONLY = "high-risk-only"


@dataclass(frozen=True)
class InterceptorConfig:
    """Per-instance interception policy. Several differently configured interceptors may coexist."""

    log_level: LogLevel = LogLevel.ALL
    exclude_paths: Tuple[str, ...] = ()
    exclude_methods: Tuple[str, ...] = ()
    scope_prefix: str = ""
    trust_forwarded_for: bool = False

    def should_log(self, method: str, path: str, actor: Optional[Actor]) -> bool:
        if self.scope_prefix and not path.startswith(self.scope_prefix):
            return False
        if any(excluded in path for excluded in self.exclude_paths):
            return False
        if method.upper() in {m.upper() for m in self.exclude_methods} and not is_admin_path(path):
            return False
        if actor is None:
            return False
        if self.log_level == LogLevel.ADMIN_ONLY:
            return actor.role in AUDIT_READER_ROLES
        if self.log_level == LogLevel.HIGH_RISK_ONLY:
            return (
                method.upper() in _MUTATING_METHODS
                or is_admin_path(path)
                or any(segment in path for segment in _SENSITIVE_SEGMENTS)
            )
        return True


def client_ip(headers: Headers, client: Optional[Tuple[str, int]], trust_forwarded: bool = False) -> str:
    """
    Socket peer, or the first X-Forwarded-For hop when running behind a trusted proxy.
    A forwarded value that is not an IP address is ignored.
    """
    if trust_forwarded:
        hop = headers.get("x-forwarded-for", "").split(",")[0].strip()
        try:
            return str(ipaddress.ip_address(hop))[:IP_ADDRESS_MAX_LENGTH]
        except ValueError:
            pass
    if client:
        return client[0][:IP_ADDRESS_MAX_LENGTH]
    return "unknown"


def endpoint_of(scope: Scope) -> str:
    """Path plus query string, as the client sent it."""
    query = scope.get("query_string", b"").decode("latin-1")
    return f"{scope['path']}?{query}" if query else scope["path"]


async def audit_high_risk(request: Request) -> None:
    """Route dependency: marks the request so the enclosing interceptor writes a CRITICAL record."""
    request.state.audit_high_risk = True


class AuditInterceptor:
    """
    Observes http.response.start and the final http.response.body message, and tees
    the request body. Messages pass through unchanged. Once the response has completed
    a record build is enqueued on the write queue. A handler that raises is recorded
    as a 500; a client that disconnects before completion is not recorded.
    """

    def __init__(self, app: ASGIApp, config: InterceptorConfig, write_queue: AuditWriteQueue) -> None:
        self.app = app
        self.config = config
        self.write_queue = write_queue

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        state: MutableMapping[str, Any] = scope.setdefault("state", {})
        started = time.perf_counter()
        body: List[bytes] = []
        status_code = 0
        completed = False
        disconnected = False
        crashed = False

        async def tee_receive() -> Message:
            message = await receive()
            if message["type"] == "http.request":
                body.append(message.get("body", b""))
            return message

        async def observe_send(message: Message) -> None:
            nonlocal status_code, completed, disconnected
            try:
                await send(message)
            except Exception:
                disconnected = True
                raise
            if message["type"] == "http.response.start":
                status_code = message["status"]
            elif message["type"] == "http.response.body" and not message.get("more_body", False):
                completed = True

        try:
            await self.app(scope, tee_receive, observe_send)
        except Exception:
            crashed = not disconnected
            raise
        finally:
            if completed:
                self._after_response(scope, state, status_code, started, b"".join(body))
            elif crashed:
                # The server error handler answers 500 once this re-raises.
                self._after_response(scope, state, 500, started, b"".join(body))

    def _after_response(
        self,
        scope: Scope,
        state: MutableMapping[str, Any],
        status_code: int,
        started: float,
        body: bytes,
    ) -> None:
        actor: Optional[Actor] = state.get("actor")
        method = scope["method"]
        path = scope["path"]
        log_request = self.config.should_log(method, path, actor)
        log_high_risk = bool(state.get(HIGH_RISK_FLAG)) and not state.get(HIGH_RISK_LOGGED_FLAG)
        if not (log_request or log_high_risk):
            return

        headers = Headers(scope=scope)
        event = ResponseCompleted(
            method=method,
            path=path,
            endpoint=endpoint_of(scope),
            status_code=status_code,
            execution_time_ms=(time.perf_counter() - started) * 1000,
            ip_address=client_ip(headers, scope.get("client"), self.config.trust_forwarded_for),
            user_agent=headers.get("user-agent", ""),
            actor_id=actor.id if actor else None,
            actor_role=actor.role.value if actor else None,
            session_id=headers.get(SESSION_HEADER),
            request_id=state.get("correlation_id"),
            content_type=headers.get("content-type", ""),
            body=body,
            query_params=dict(QueryParams(scope.get("query_string", b""))),
        )
        if log_request:
            self.write_queue.enqueue(partial(build_request_record, event))
        if log_high_risk:
            state[HIGH_RISK_LOGGED_FLAG] = True
            self.write_queue.enqueue(partial(build_high_risk_record, event))
