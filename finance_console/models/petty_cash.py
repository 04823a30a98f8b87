"""
Petty cash transaction model.

Cash put into the box is a CREDIT, cash taken out is a DEBIT.
Only approved transactions count toward the box balance.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    String, Text, Boolean, Date, DateTime, Numeric, ForeignKey,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from finance_console.models.base import Base
from finance_console.models.enums import EntryType


class PettyCashTransaction(Base):
    __tablename__ = "petty_cash_transactions"

    id: Mapped[int] = mapped_column(primary_key=True)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    entry_type: Mapped[EntryType] = mapped_column(
        SAEnum(EntryType, name="entry_type_enum"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    purpose: Mapped[str | None] = mapped_column(String(255), nullable=True)
    employee_id: Mapped[int | None] = mapped_column(
        ForeignKey("employees.id"), nullable=True, index=True
    )
    approved: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def __repr__(self) -> str:
        state = "approved" if self.approved else "pending"
        return (
            f"<PettyCashTransaction {self.entry_type.value} "
            f"{self.amount} ({state})>"
        )
