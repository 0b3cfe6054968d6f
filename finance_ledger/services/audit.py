"""Append-only audit trail for ledger events."""

import json
from typing import Any

from sqlalchemy.orm import Session

from finance_ledger.models.audit_log import AuditLog


def record_event(
    db: Session,
    event_type: str,
    entity_id: Any = None,
    **details: Any,
) -> AuditLog:
    """
    Add an audit record to the current unit of work.

    Nothing is flushed here, so the record commits (or rolls
    back) together with the change it describes.
    """
    entry = AuditLog(
        event_type=event_type,
        entity_id=None if entity_id is None else str(entity_id),
        details=json.dumps(details, default=str, sort_keys=True),
    )
    db.add(entry)
    return entry
