"""
Garnishment installment model.

One payment withheld from payroll and applied to a profile.
The two unique constraints back up the checks done in
GarnishmentService: if two writers race past the application
checks, the database rejects the second insert.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    String, Text, Date, DateTime, Numeric, ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from finance_console.models.base import Base


class GarnishmentInstallment(Base):
    __tablename__ = "garnishment_installments"
    __table_args__ = (
        UniqueConstraint(
            "profile_id", "installment_number",
            name="uq_installment_profile_number",
        ),
        UniqueConstraint(
            "profile_id", "payroll_date",
            name="uq_installment_profile_payroll_date",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    profile_id: Mapped[int] = mapped_column(
        ForeignKey("garnishment_profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id"), nullable=False, index=True
    )
    batch_id: Mapped[int | None] = mapped_column(
        ForeignKey("bulk_payment_batches.id"), nullable=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payroll_date: Mapped[date] = mapped_column(Date, nullable=False)
    installment_number: Mapped[int] = mapped_column(nullable=False)
    check_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    recorded_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    recorded_by_name: Mapped[str | None] = mapped_column(
        String(200), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def __repr__(self) -> str:
        return (
            f"<GarnishmentInstallment #{self.installment_number} "
            f"{self.amount} on {self.payroll_date}>"
        )
