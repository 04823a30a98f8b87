"""
Pydantic schemas for audit trail and report data.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel

from finance_console.models.enums import ComplianceStatus
from finance_console.schemas.garnishment import ProfileResponse


class AuditLogResponse(BaseModel):
    id: int
    action: str
    table_name: str
    record_id: str | None
    old_values: dict[str, Any] | None
    new_values: dict[str, Any] | None
    actor_id: str | None
    actor_name: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class PaymentHistoryLine(BaseModel):
    installment_number: int
    payroll_date: date
    amount: Decimal
    check_number: str | None
    running_paid: Decimal
    running_balance: Decimal


class Compliance(BaseModel):
    status: ComplianceStatus
    days_until_due: int | None


class ProfileCompliance(Compliance):
    profile_id: int
    case_number: str
    employee_id: int
    next_due_date: date | None
    balance_remaining: Decimal


class PaymentHistoryReport(BaseModel):
    """Data behind the payment history, balance certification and affidavit."""
    profile: ProfileResponse
    employee_name: str
    compliance: Compliance
    lines: list[PaymentHistoryLine]
    total_paid: Decimal
    balance_remaining: Decimal
    generated_on: date
