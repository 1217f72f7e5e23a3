"""Shared fixtures: SQLite-backed store, controllable clock, record factory, fake Redis, mock publisher."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from audit_trail.domain.models.audit_record import (
    ActionType,
    AuditRecord,
    AuditStatus,
    RecordMetadata,
    Resource,
    Severity,
)
from audit_trail.infrastructure.database.audit_repository_db import SqlAuditRepository
from audit_trail.infrastructure.database.models import UserAccount
from audit_trail.infrastructure.database.session import (
    build_engine,
    build_session_factory,
    create_schema,
)

ADMIN_ID = "64a1f0c2e4b0a1b2c3d4e5f6"
SUPER_ADMIN_ID = "64a1f0c2e4b0a1b2c3d4e5f7"
USER_ID = "64a1f0c2e4b0a1b2c3d4e5f8"


class FrozenClock:
    """Deterministic clock for the store; advance() moves time forward."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeRedis:
    """In-memory Redis for unit tests (rate limiting)."""

    def __init__(self):
        self._store: dict[str, int] = {}
        self.ttls: dict[str, int] = {}

    async def incr(self, key: str) -> int:
        self._store[key] = self._store.get(key, 0) + 1
        return self._store[key]

    async def expire(self, key: str, seconds: int) -> None:
        self.ttls[key] = seconds

    async def close(self) -> None:
        pass


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def mock_publisher():
    """Mock RabbitMQ publisher so tests do not connect to real broker."""
    p = AsyncMock()
    p.publish = AsyncMock(return_value=None)
    return p


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path}/audit.db")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def repository(session_factory, clock):
    return SqlAuditRepository(session_factory, clock=clock)


@pytest.fixture
def seed_users(session_factory):
    """Insert rows into the host's users table."""

    async def _seed(*users):
        async with session_factory() as session:
            for user_id, name, email, role in users:
                session.add(UserAccount(id=user_id, name=name, email=email, role=role))
            await session.commit()

    return _seed


@pytest.fixture
def metadata():
    return RecordMetadata(
        ip_address="10.0.0.1",
        user_agent="pytest-agent",
        method="GET",
        endpoint="/admin/audit-logs",
        response_status=200,
    )


@pytest.fixture
def make_record(metadata):
    """Factory for unsaved audit records with sensible defaults."""

    def _make(**overrides) -> AuditRecord:
        fields = dict(
            actor=ADMIN_ID,
            action="GET /api/users",
            action_type=ActionType.READ,
            resource=Resource.USER,
            metadata=metadata,
            severity=Severity.LOW,
            status=AuditStatus.SUCCESS,
        )
        fields.update(overrides)
        return AuditRecord(**fields)

    return _make
