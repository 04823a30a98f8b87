"""
Audit log model.

Records who changed what, and when, for every mutation of a
garnishment profile, installment, loan record, or status.
Court filings depend on this history being complete.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import String, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column

from finance_console.models.base import Base


class AuditLog(Base):
    """
    Immutable record of a change.

    Audit logs are append-only. You never update or delete an
    audit record. old_values and new_values hold only the fields
    that changed.
    """

    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(primary_key=True)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    table_name: Mapped[str] = mapped_column(
        String(100), nullable=False, index=True
    )
    record_id: Mapped[str | None] = mapped_column(
        String(100), nullable=True, index=True
    )
    old_values: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True
    )
    new_values: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True
    )
    actor_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    actor_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<AuditLog {self.action} {self.table_name}:{self.record_id}>"
