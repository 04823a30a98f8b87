"""
Garnishment profile model.

A profile is one legal debt-collection order against an employee.
amount_paid_so_far and balance_remaining are derived from the
profile's installments; only GarnishmentService writes them, and
always by recomputing from the installment rows.

The version column gives optimistic concurrency: an UPDATE that
finds the row changed since it was read fails with StaleDataError
instead of silently overwriting another writer's balance.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    String, Text, Date, DateTime, Numeric, ForeignKey,
    Enum as SAEnum, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from finance_console.models.base import Base
from finance_console.models.enums import ProfileStatus


class GarnishmentProfile(Base):
    __tablename__ = "garnishment_profiles"

    id: Mapped[int] = mapped_column(primary_key=True)
    external_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, unique=True, nullable=False, default=uuid.uuid4
    )
    case_number: Mapped[str] = mapped_column(
        String(100), unique=True, nullable=False
    )
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id"), nullable=False, index=True
    )
    creditor: Mapped[str] = mapped_column(String(200), nullable=False)
    court_district: Mapped[str] = mapped_column(String(200), nullable=False)
    law_firm: Mapped[str] = mapped_column(String(200), nullable=False)
    collection_agency_id: Mapped[int | None] = mapped_column(
        ForeignKey("collection_agencies.id"), nullable=True, index=True
    )
    total_amount_owed: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False
    )
    amount_paid_so_far: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )
    balance_remaining: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False
    )
    status: Mapped[ProfileStatus] = mapped_column(
        SAEnum(
            ProfileStatus,
            name="profile_status_enum",
            create_constraint=True,
        ),
        nullable=False,
        default=ProfileStatus.ACTIVE,
    )
    # Next court-ordered payment date, drives the compliance status
    next_due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    version: Mapped[int] = mapped_column(nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return (
            f"<GarnishmentProfile {self.case_number} "
            f"balance={self.balance_remaining} ({self.status.value})>"
        )
