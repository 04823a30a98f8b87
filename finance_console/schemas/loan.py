"""
Pydantic schemas for employee loan operations.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from finance_console.models.enums import ApprovalStatus


class WithdrawalCreate(BaseModel):
    employee_id: int
    amount: Decimal = Field(gt=0, decimal_places=2)
    withdrawal_date: date
    due_date: date
    approved_by_name: str = Field(min_length=1, max_length=200)
    notes: str | None = None


class WithdrawalResponse(BaseModel):
    id: int
    external_id: uuid.UUID
    employee_id: int
    amount: Decimal
    withdrawal_date: date
    due_date: date
    approved_by_name: str
    notes: str | None
    status: ApprovalStatus
    total_outstanding_at_time: Decimal
    requires_interest: bool
    created_by: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class RepaymentCreate(BaseModel):
    employee_id: int
    amount: Decimal = Field(gt=0, decimal_places=2)
    payroll_date: date
    notes: str | None = None


class RepaymentResponse(BaseModel):
    id: int
    employee_id: int
    amount: Decimal
    payroll_date: date
    notes: str | None
    created_by: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class LoanRequestCreate(BaseModel):
    employee_id: int
    requested_amount: Decimal = Field(gt=0, decimal_places=2)
    purpose: str = Field(max_length=500)
    request_date: date | None = None


class LoanRequestResponse(BaseModel):
    id: int
    employee_id: int
    requested_amount: Decimal
    purpose: str
    request_date: date
    status: ApprovalStatus
    notes: str | None
    created_by: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ApprovalStatusUpdate(BaseModel):
    new_status: ApprovalStatus


class WithdrawalEvaluation(BaseModel):
    """Decision basis captured on a new withdrawal."""
    total_outstanding_at_time: Decimal
    requires_interest: bool


class EmployeeLoanSummary(BaseModel):
    employee_id: int
    total_withdrawn: Decimal
    total_repaid: Decimal
    outstanding_balance: Decimal
