# audit_trail/infrastructure/database/models.py

import uuid

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, String, Uuid, event
from sqlalchemy.dialects.postgresql import JSONB

from audit_trail.audit.exceptions import ImmutableRecordError
from audit_trail.infrastructure.database.session import Base

JsonColumn = JSON().with_variant(JSONB(), "postgresql")


class AuditLog(Base):
    """ORM model for append-only audit records."""

    __tablename__ = "audit_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    actor_id = Column(String(24), nullable=True)
    action = Column(String(100), nullable=False)
    action_type = Column(String(32), nullable=False)
    resource = Column(String(16), nullable=False)
    resource_id = Column(String(64), nullable=True)
    details = Column(String(1000), nullable=True)
    changes = Column(JsonColumn, nullable=True)
    metadata_ = Column("metadata", JsonColumn, nullable=False)
    ip_address = Column(String(64), nullable=False, index=True)
    severity = Column(String(16), nullable=False, default="LOW")
    status = Column(String(16), nullable=False, default="SUCCESS")
    tags = Column(JsonColumn, nullable=False, default=list)
    is_system_generated = Column(Boolean, nullable=False, default=False)
    related_logs = Column(JsonColumn, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), nullable=False, index=True)

    __table_args__ = (
        Index("ix_audit_logs_actor_created", "actor_id", "created_at"),
        Index("ix_audit_logs_action_type_created", "action_type", "created_at"),
        Index("ix_audit_logs_resource_resource_id", "resource", "resource_id"),
        Index("ix_audit_logs_severity_status", "severity", "status"),
    )


@event.listens_for(AuditLog, "before_update")
def _reject_audit_update(mapper, connection, target):
    raise ImmutableRecordError(f"Audit record {target.id} is immutable")


class UserAccount(Base):
    """Read-only projection of the host application's users, for resolving actor identities."""

    __tablename__ = "users"

    id = Column(String(24), primary_key=True)
    name = Column(String(200), nullable=True)
    email = Column(String(320), nullable=True)
    role = Column(String(32), nullable=True)
