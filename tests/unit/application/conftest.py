"""Fixtures for application-service tests: real SQLite store, recorder, directory."""

import logging
from unittest.mock import AsyncMock

import pytest

from audit_trail.application.audit_query_service import AuditQueryService
from audit_trail.application.retention_service import RetentionService
from audit_trail.audit.recorder import AuditRecorder
from audit_trail.infrastructure.database.actor_directory_db import SqlActorDirectory
from audit_trail.security.rbac import Actor, Role


@pytest.fixture
def failure_channel():
    channel = AsyncMock()
    channel.report = AsyncMock(return_value=None)
    return channel


@pytest.fixture
def recorder(repository, failure_channel):
    return AuditRecorder(repository, failure_channel, logging.getLogger("test"))


@pytest.fixture
def directory(session_factory):
    return SqlActorDirectory(session_factory)


@pytest.fixture
def admin():
    return Actor("64a1f0c2e4b0a1b2c3d4e5f6", Role.ADMIN)


@pytest.fixture
def query_service(repository, directory, recorder, clock):
    return AuditQueryService(
        repository=repository,
        directory=directory,
        recorder=recorder,
        logger=logging.getLogger("test"),
        clock=clock,
    )


@pytest.fixture
def retention_service(repository, recorder, clock):
    return RetentionService(repository, recorder, logging.getLogger("test"), clock=clock)
