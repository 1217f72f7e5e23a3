"""SqlActorDirectory: identity resolution from the users table."""

import pytest

from audit_trail.infrastructure.database.actor_directory_db import SqlActorDirectory

ALICE = "64a1f0c2e4b0a1b2c3d4e5f6"
BOB = "64a1f0c2e4b0a1b2c3d4e5f7"


@pytest.mark.asyncio
async def test_get_known_and_unknown(session_factory, seed_users):
    await seed_users((ALICE, "Alice", "alice@example.com", "admin"))
    directory = SqlActorDirectory(session_factory)
    alice = await directory.get(ALICE)
    assert alice.name == "Alice"
    assert alice.email == "alice@example.com"
    assert alice.role == "admin"
    assert await directory.get(BOB) is None


@pytest.mark.asyncio
async def test_get_many_skips_unknown_and_null(session_factory, seed_users):
    await seed_users((ALICE, "Alice", "alice@example.com", "admin"), (BOB, "Bob", "bob@example.com", "user"))
    directory = SqlActorDirectory(session_factory)
    found = await directory.get_many([ALICE, None, "64a1f0c2e4b0a1b2c3d4e5ff"])
    assert set(found) == {ALICE}
    assert await directory.get_many([]) == {}
