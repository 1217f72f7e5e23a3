"""Audit log export rendering: CSV and JSON envelopes. No HTTP."""

import csv
import io
from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional, Sequence

from audit_trail.domain.models.audit_record import AuditRecord
from audit_trail.domain.schemas.audit import (
    AuditRecordResponse,
    ExportInfo,
    JsonExportResponse,
)
from audit_trail.application.actor_directory import ActorIdentity

CSV_MEDIA_TYPE = "text/csv"
CSV_HEADER = (
    "Date",
    "User",
    "Email",
    "Action",
    "Action Type",
    "Resource",
    "Resource ID",
    "Details",
    "Severity",
    "Status",
    "IP Address",
    "User Agent",
    "Method",
    "Endpoint",
)
UNKNOWN_ACTOR = "Unknown"


def export_filename(on: date) -> str:
    return f"audit-logs-{on.isoformat()}.csv"


def _csv_row(record: AuditRecord, actor: Optional[ActorIdentity]) -> list:
    meta = record.metadata
    return [
        record.created_at.isoformat() if record.created_at else "",
        (actor.name if actor else None) or UNKNOWN_ACTOR,
        (actor.email if actor else None) or UNKNOWN_ACTOR,
        record.action,
        record.action_type.value,
        record.resource.value,
        record.resource_id or "",
        record.details or "",
        record.severity.value,
        record.status.value,
        meta.ip_address or "",
        meta.user_agent or "",
        meta.method or "",
        meta.endpoint or "",
    ]


def render_csv(
    records: Sequence[AuditRecord],
    actors: Mapping[str, ActorIdentity],
) -> str:
    """
    One header row, then one row per record. Fields containing a comma, quote or
    line break are quoted with inner quotes doubled. The header is written even
    when there are no records.
    """
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for record in records:
        writer.writerow(_csv_row(record, actors.get(record.actor) if record.actor else None))
    return buf.getvalue()


def render_json(
    records: Sequence[AuditRecord],
    filters: Dict[str, Any],
    exported_at: datetime,
) -> JsonExportResponse:
    return JsonExportResponse(
        data=[AuditRecordResponse.from_record(r) for r in records],
        export_info=ExportInfo(
            exported_at=exported_at,
            filters=filters,
            total_records=len(records),
        ),
    )
