"""Actor directory protocol. Application layer depends on this; infrastructure implements it."""

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Protocol


@dataclass(frozen=True)
class ActorIdentity:
    """Display identity of an actor, resolved from the host's user store."""

    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None


class ActorDirectory(Protocol):
    """Read-only lookup of actor identities. Raises AuditStoreError on failure."""

    async def get(self, actor_id: str) -> Optional[ActorIdentity]:
        """Return the identity for actor_id, or None if unknown."""
        ...

    async def get_many(self, actor_ids: Iterable[str]) -> Dict[str, ActorIdentity]:
        """Resolve several ids at once. Unknown ids are absent from the result."""
        ...
