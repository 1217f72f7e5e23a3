# audit_trail/main.py

import logging
from contextlib import asynccontextmanager
from typing import Iterable, Optional

from fastapi import APIRouter, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from audit_trail.api.interceptor import AuditInterceptor, InterceptorConfig, LogLevel
from audit_trail.api.middleware import (
    ActorContextMiddleware,
    CorrelationIdMiddleware,
    RateLimitMiddleware,
)
from audit_trail.api.routers import audit_logs, health
from audit_trail.application.exceptions import (
    ApplicationError,
    AuditReadError,
    NotFoundError,
    RetentionCleanupError,
)
from audit_trail.audit.failure_channel import FailureChannel, FailurePublisher
from audit_trail.audit.recorder import AuditRecorder
from audit_trail.audit.write_queue import AuditWriteQueue
from audit_trail.config.logging import configure_logging
from audit_trail.config.settings import AppSettings, get_settings
from audit_trail.domain.exceptions import DomainError, DomainValidationError
from audit_trail.infrastructure.cache.redis_client import RedisClient
from audit_trail.infrastructure.database.actor_directory_db import SqlActorDirectory
from audit_trail.infrastructure.database.audit_repository_db import SqlAuditRepository
from audit_trail.infrastructure.database.session import build_engine, build_session_factory
from audit_trail.infrastructure.messaging.rabbitmq_publisher import RabbitMQPublisher
from audit_trail.observability.metrics import MetricsCollector
from audit_trail.scalability.rate_limiter import ClientRateLimiter, RedisRateLimitBackend
from audit_trail.security.exceptions import AuthenticationError, AuthorizationError

AUDIT_LOGS_PREFIX = "/admin/audit-logs"

logger = logging.getLogger(__name__)


async def domain_validation_error_handler(request, exc: DomainValidationError):
    return JSONResponse(status_code=400, content={"detail": exc.message, "errors": exc.errors})


async def request_validation_error_handler(request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")) or "request",
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"detail": "Validation failed", "errors": errors})


async def domain_error_handler(request, exc: DomainError):
    return JSONResponse(status_code=400, content={"detail": exc.message})


async def authentication_error_handler(request, exc: AuthenticationError):
    return JSONResponse(status_code=401, content={"detail": exc.message})


async def authorization_error_handler(request, exc: AuthorizationError):
    return JSONResponse(status_code=403, content={"detail": exc.message})


async def not_found_error_handler(request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": exc.message})


async def retention_cleanup_error_handler(request, exc: RetentionCleanupError):
    return JSONResponse(status_code=500, content={"detail": exc.message})


async def audit_read_error_handler(request, exc: AuditReadError):
    return JSONResponse(status_code=500, content={"detail": exc.message})


async def application_error_handler(request, exc: ApplicationError):
    return JSONResponse(status_code=500, content={"detail": exc.message})


async def unexpected_error_handler(request, exc: Exception):
    logger.exception("unhandled_error", extra={"path": request.url.path})
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    settings: AppSettings = app.state.settings
    dropped = await app.state.write_queue.drain(settings.audit_drain_timeout_seconds)
    logger.info("audit_queue_drained", extra={"dropped": dropped})
    if app.state.redis_client is not None:
        await app.state.redis_client.close()
    if isinstance(app.state.publisher, RabbitMQPublisher):
        await app.state.publisher.close()
    if app.state.engine is not None:
        await app.state.engine.dispose()


def create_app(
    settings: Optional[AppSettings] = None,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    routers: Iterable[APIRouter] = (),
    publisher: Optional[FailurePublisher] = None,
    redis_client: Optional[RedisClient] = None,
) -> FastAPI:
    """
    Build the service. Host applications pass their own domain routers; every route is
    audited by the general interceptor, and routes depending on audit_high_risk also
    get a CRITICAL record.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    engine = None
    if session_factory is None:
        engine = build_engine(settings.database_url, echo=settings.database_echo)
        session_factory = build_session_factory(engine)
    if publisher is None and settings.audit_failure_publish_enabled:
        publisher = RabbitMQPublisher(settings.rabbitmq_url)
    if redis_client is None and settings.rate_limit_enabled:
        redis_client = RedisClient(settings.redis_url)

    metrics = MetricsCollector() if settings.enable_metrics else None
    audit_logger = logging.getLogger("audit_trail.audit")
    failure_channel = FailureChannel(
        logger=audit_logger,
        metrics=metrics,
        publisher=publisher,
        exchange_name=settings.audit_failure_exchange,
    )
    repository = SqlAuditRepository(session_factory)
    recorder = AuditRecorder(repository, failure_channel, audit_logger, metrics=metrics)
    write_queue = AuditWriteQueue(
        recorder,
        failure_channel,
        audit_logger,
        max_queued=settings.audit_queue_size,
        workers=settings.audit_workers,
        metrics=metrics,
    )

    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.repository = repository
    app.state.directory = SqlActorDirectory(session_factory)
    app.state.recorder = recorder
    app.state.write_queue = write_queue
    app.state.metrics = metrics
    app.state.publisher = publisher
    app.state.redis_client = redis_client

    # Middleware order: last added runs first (outermost). Request flow:
    # CorrelationId -> ActorContext -> RateLimit -> general interceptor -> audit-surface interceptor.
    app.add_middleware(
        AuditInterceptor,
        config=InterceptorConfig(
            log_level=LogLevel.ADMIN_ONLY,
            scope_prefix=AUDIT_LOGS_PREFIX,
            trust_forwarded_for=settings.trust_forwarded_for,
        ),
        write_queue=write_queue,
    )
    app.add_middleware(
        AuditInterceptor,
        config=InterceptorConfig(
            log_level=LogLevel(settings.audit_log_level),
            exclude_paths=(*settings.audit_exclude_paths, AUDIT_LOGS_PREFIX),
            exclude_methods=tuple(settings.audit_exclude_methods),
            trust_forwarded_for=settings.trust_forwarded_for,
        ),
        write_queue=write_queue,
    )
    if settings.rate_limit_enabled:
        limiter = ClientRateLimiter(
            RedisRateLimitBackend(redis_client),
            requests_per_window=settings.rate_limit_requests,
            window_seconds=settings.rate_limit_window_seconds,
            metrics=metrics,
        )
        app.add_middleware(RateLimitMiddleware, limiter=limiter, write_queue=write_queue)
    app.add_middleware(ActorContextMiddleware, write_queue=write_queue)
    app.add_middleware(CorrelationIdMiddleware)

    app.add_exception_handler(DomainValidationError, domain_validation_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(AuthenticationError, authentication_error_handler)
    app.add_exception_handler(AuthorizationError, authorization_error_handler)
    app.add_exception_handler(NotFoundError, not_found_error_handler)
    app.add_exception_handler(RetentionCleanupError, retention_cleanup_error_handler)
    app.add_exception_handler(AuditReadError, audit_read_error_handler)
    app.add_exception_handler(ApplicationError, application_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    # Routers: /health, /admin/audit-logs, then host routers
    app.include_router(health.router)
    app.include_router(audit_logs.router, prefix=AUDIT_LOGS_PREFIX)
    for router in routers:
        app.include_router(router)

    return app


app = create_app()
