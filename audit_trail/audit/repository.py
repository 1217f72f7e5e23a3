"""Audit record store protocol and query value types. Application layer depends on this; infrastructure implements it."""

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple
from uuid import UUID

from audit_trail.domain.models.audit_record import (
    ActionType,
    AuditRecord,
    AuditStatus,
    Resource,
    Severity,
)

EXPORT_HARD_LIMIT = 10000
SORTABLE_FIELDS = ("createdAt", "actionType", "resource", "severity", "status")


@dataclass(frozen=True)
class AuditFilters:
    """Optional, AND-combined filters. Date bounds are inclusive on created_at."""

    actor_id: Optional[str] = None
    action_type: Optional[ActionType] = None
    resource: Optional[Resource] = None
    severity: Optional[Severity] = None
    status: Optional[AuditStatus] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Only the filters that are set, in wire form."""
        out: Dict[str, Any] = {}
        if self.actor_id:
            out["user"] = self.actor_id
        if self.action_type:
            out["actionType"] = self.action_type.value
        if self.resource:
            out["resource"] = self.resource.value
        if self.severity:
            out["severity"] = self.severity.value
        if self.status:
            out["status"] = self.status.value
        if self.date_from:
            out["dateFrom"] = self.date_from.isoformat()
        if self.date_to:
            out["dateTo"] = self.date_to.isoformat()
        return out


@dataclass(frozen=True)
class Pagination:
    page: int = 1
    limit: int = 50
    sort_by: str = "createdAt"
    sort_order: str = "desc"

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError("page must be >= 1")
        if not 1 <= self.limit <= EXPORT_HARD_LIMIT:
            raise ValueError(f"limit must be between 1 and {EXPORT_HARD_LIMIT}")
        if self.sort_by not in SORTABLE_FIELDS:
            raise ValueError(f"sort_by must be one of {', '.join(SORTABLE_FIELDS)}")
        if self.sort_order not in ("asc", "desc"):
            raise ValueError("sort_order must be asc or desc")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class AuditPage:
    records: List[AuditRecord]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


@dataclass(frozen=True)
class AuditStatsSnapshot:
    """Raw aggregates over a window. Actor ids are resolved to identities by the service."""

    total: int
    failed: int
    by_action_type: List[Tuple[str, int]] = field(default_factory=list)
    by_resource: List[Tuple[str, int]] = field(default_factory=list)
    by_severity: List[Tuple[str, int]] = field(default_factory=list)
    top_actors: List[Tuple[str, int]] = field(default_factory=list)
    daily: List[Tuple[date, int]] = field(default_factory=list)


class AuditRepository(Protocol):
    """Protocol for the append-only audit record store. Raises AuditStoreError on failure."""

    async def save(self, record: AuditRecord) -> AuditRecord:
        """Persist a record; return it with id and created_at assigned. Never updates."""
        ...

    async def get(self, record_id: UUID) -> Optional[AuditRecord]:
        ...

    async def get_many(self, record_ids: Iterable[UUID]) -> List[AuditRecord]:
        """Records for the given ids, newest first. Unknown ids are skipped."""
        ...

    async def query(self, filters: AuditFilters, pagination: Pagination) -> AuditPage:
        ...

    async def aggregate_stats(
        self,
        since: datetime,
        until: datetime,
        trend_since: datetime,
        top_n: int = 10,
    ) -> AuditStatsSnapshot:
        ...

    async def delete_older_than(self, cutoff: datetime) -> int:
        """Bulk-delete records with created_at < cutoff. Returns the number removed."""
        ...
