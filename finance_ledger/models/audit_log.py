"""
Audit log model.

Records ledger events (creates, updates, deletes, materialized
occurrences, reconciliations) so every balance change can be
traced back to the operation that caused it.
"""

from datetime import datetime

from sqlalchemy import String, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from finance_ledger.models.base import Base


class AuditLog(Base):
    """
    Immutable record of a ledger event.

    Audit records are append-only. They are never
    updated or deleted.
    """

    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(primary_key=True)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    details: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
