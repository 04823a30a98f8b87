"""
Bulk payment batch model.

Groups the installments applied from one payroll run so the
batch can be traced back from each installment via batch_id.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import String, Text, Date, DateTime, Numeric
from sqlalchemy.orm import Mapped, mapped_column

from finance_console.models.base import Base


class BulkPaymentBatch(Base):
    __tablename__ = "bulk_payment_batches"

    id: Mapped[int] = mapped_column(primary_key=True)
    batch_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )
    total_payments: Mapped[int] = mapped_column(nullable=False, default=0)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by_name: Mapped[str | None] = mapped_column(
        String(200), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
