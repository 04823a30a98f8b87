"""
Employee loan models: withdrawals, repayments, and requests.

Repayments are pooled per employee. They reference the employee,
never a specific withdrawal, so the outstanding balance is one
running total per borrower.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    String, Text, Boolean, Date, DateTime, Numeric, ForeignKey,
    Enum as SAEnum, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from finance_console.models.base import Base
from finance_console.models.enums import ApprovalStatus


class LoanWithdrawal(Base):
    """
    Money handed to an employee as a loan.

    total_outstanding_at_time and requires_interest are written once
    at creation and document the basis of the lending decision. They
    are never recomputed when later history changes.
    """

    __tablename__ = "employee_loan_withdrawals"

    id: Mapped[int] = mapped_column(primary_key=True)
    external_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, unique=True, nullable=False, default=uuid.uuid4
    )
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    withdrawal_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    approved_by_name: Mapped[str] = mapped_column(String(200), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[ApprovalStatus] = mapped_column(
        SAEnum(
            ApprovalStatus,
            name="withdrawal_status_enum",
            create_constraint=True,
        ),
        nullable=False,
        default=ApprovalStatus.PENDING,
    )
    total_outstanding_at_time: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False
    )
    requires_interest: Mapped[bool] = mapped_column(Boolean, nullable=False)
    created_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def __repr__(self) -> str:
        return f"<LoanWithdrawal {self.amount} ({self.status.value})>"


class LoanRepayment(Base):
    __tablename__ = "employee_loan_repayments"

    id: Mapped[int] = mapped_column(primary_key=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payroll_date: Mapped[date] = mapped_column(Date, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    def __repr__(self) -> str:
        return f"<LoanRepayment {self.amount} on {self.payroll_date}>"


class LoanRequest(Base):
    __tablename__ = "employee_loan_requests"

    id: Mapped[int] = mapped_column(primary_key=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id"), nullable=False, index=True
    )
    requested_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False
    )
    purpose: Mapped[str] = mapped_column(String(500), nullable=False)
    request_date: Mapped[date] = mapped_column(
        Date, nullable=False, default=date.today
    )
    status: Mapped[ApprovalStatus] = mapped_column(
        SAEnum(
            ApprovalStatus,
            name="request_status_enum",
            create_constraint=True,
        ),
        nullable=False,
        default=ApprovalStatus.PENDING,
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
        return f"<LoanRequest {self.requested_amount} ({self.status.value})>"
