"""Fixtures for API unit tests: app over SQLite, host routes, actor headers, AsyncClient."""

import pytest
from fastapi import APIRouter, Depends, Request
from httpx import ASGITransport, AsyncClient

from audit_trail.api.interceptor import audit_high_risk
from audit_trail.audit.repository import AuditFilters, Pagination
from audit_trail.config.settings import AppSettings
from audit_trail.main import create_app

ADMIN_ID = "64a1f0c2e4b0a1b2c3d4e5f6"
SUPER_ADMIN_ID = "64a1f0c2e4b0a1b2c3d4e5f7"
USER_ID = "64a1f0c2e4b0a1b2c3d4e5f8"


def build_host_router() -> APIRouter:
    """Stand-in for the host application's domain routes."""
    router = APIRouter()

    @router.get("/api/users")
    async def list_users():
        return {"users": []}

    @router.post("/api/users", status_code=201)
    async def create_user(request: Request):
        body = await request.json()
        return {"email": body.get("email")}

    @router.delete("/admin/users/{user_id}")
    async def delete_user(user_id: str):
        return {"message": "User deleted"}

    @router.patch("/admin/users/bulk-role", dependencies=[Depends(audit_high_risk)])
    async def bulk_role():
        return {"updated": 3}

    @router.post("/api/boom")
    async def boom():
        raise RuntimeError("handler crashed")

    return router


@pytest.fixture
def settings():
    return AppSettings(environment="test", audit_workers=1, log_level="WARNING")


@pytest.fixture
def test_app(settings, session_factory, mock_publisher):
    return create_app(
        settings=settings,
        session_factory=session_factory,
        routers=[build_host_router()],
        publisher=mock_publisher,
    )


@pytest.fixture
async def async_client(test_app):
    """Async HTTP client for testing; no lifespan, so the queue is joined explicitly."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    await test_app.state.write_queue.drain(timeout=1)


@pytest.fixture
def stored_records(test_app):
    """Wait for detached writes, then return every stored record, newest first."""

    async def _records():
        await test_app.state.write_queue.join()
        page = await test_app.state.repository.query(AuditFilters(), Pagination(limit=1000))
        return page.records

    return _records


@pytest.fixture
def admin_headers():
    return {"X-Actor-ID": ADMIN_ID, "X-Actor-Role": "admin"}


@pytest.fixture
def super_admin_headers():
    return {"X-Actor-ID": SUPER_ADMIN_ID, "X-Actor-Role": "super-admin"}


@pytest.fixture
def user_headers():
    return {"X-Actor-ID": USER_ID, "X-Actor-Role": "user"}
