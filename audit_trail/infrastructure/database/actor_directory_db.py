"""DB-backed actor directory. Resolves actor ids against the users table (read-only)."""

from typing import Dict, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from audit_trail.application.actor_directory import ActorIdentity
from audit_trail.audit.exceptions import AuditStoreError
from audit_trail.infrastructure.database.models import UserAccount


def _to_identity(orm: UserAccount) -> ActorIdentity:
    return ActorIdentity(id=orm.id, name=orm.name, email=orm.email, role=orm.role)


class SqlActorDirectory:
    """Looks up actor identities. Implements ActorDirectory protocol."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, actor_id: str) -> Optional[ActorIdentity]:
        try:
            async with self._session_factory() as session:
                orm = await session.get(UserAccount, actor_id)
        except SQLAlchemyError as e:
            raise AuditStoreError(f"Failed to resolve actor: {e}") from e
        return _to_identity(orm) if orm is not None else None

    async def get_many(self, actor_ids: Iterable[str]) -> Dict[str, ActorIdentity]:
        ids = {a for a in actor_ids if a}
        if not ids:
            return {}
        try:
            async with self._session_factory() as session:
                rows = (
                    await session.execute(select(UserAccount).where(UserAccount.id.in_(ids)))
                ).scalars().all()
        except SQLAlchemyError as e:
            raise AuditStoreError(f"Failed to resolve actors: {e}") from e
        return {r.id: _to_identity(r) for r in rows}
