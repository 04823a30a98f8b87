"""
Pydantic schemas for garnishment profiles and installments.

These define the API contract. Money is Decimal with two
fractional digits; dates are ISO-8601 calendar dates.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from finance_console.models.enums import ProfileStatus


# --- Profile Schemas ---

class ProfileCreate(BaseModel):
    """Request to open a garnishment case against an employee."""
    case_number: str = Field(max_length=100)
    employee_id: int
    creditor: str = Field(max_length=200)
    court_district: str = Field(min_length=1, max_length=200)
    law_firm: str = Field(min_length=1, max_length=200)
    total_amount_owed: Decimal = Field(ge=0, decimal_places=2)
    collection_agency_id: int | None = None
    next_due_date: date | None = None
    notes: str | None = None

    @field_validator("case_number", "creditor")
    @classmethod
    def strip_required(cls, v: str) -> str:
        # Blank values are rejected by the service with a specific message
        return v.strip()


class ProfileResponse(BaseModel):
    id: int
    external_id: uuid.UUID
    case_number: str
    employee_id: int
    creditor: str
    court_district: str
    law_firm: str
    collection_agency_id: int | None
    total_amount_owed: Decimal
    amount_paid_so_far: Decimal
    balance_remaining: Decimal
    status: ProfileStatus
    next_due_date: date | None
    notes: str | None
    created_by: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProfileStatusUpdate(BaseModel):
    """Request to suspend, reactivate, or complete a profile."""
    new_status: ProfileStatus
    reason: str = Field(min_length=1, max_length=255)


# --- Installment Schemas ---

class InstallmentCreate(BaseModel):
    amount: Decimal = Field(gt=0, decimal_places=2)
    payroll_date: date
    check_number: str | None = Field(default=None, max_length=50)
    notes: str | None = None


class InstallmentUpdate(BaseModel):
    """Fields of an installment that may be corrected after entry."""
    amount: Decimal = Field(gt=0, decimal_places=2)
    payroll_date: date | None = None
    check_number: str | None = Field(default=None, max_length=50)
    notes: str | None = None


class InstallmentResponse(BaseModel):
    id: int
    profile_id: int
    employee_id: int
    batch_id: int | None
    amount: Decimal
    payroll_date: date
    installment_number: int
    check_number: str | None
    notes: str | None
    recorded_by: str | None
    recorded_by_name: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# --- Bulk Payment Schemas ---

class BulkPaymentEntry(BaseModel):
    """One row of a payroll bulk-payment upload."""
    employee_name: str = Field(min_length=1, max_length=200)
    amount: Decimal = Field(decimal_places=2)
    check_number: str | None = Field(default=None, max_length=50)
    notes: str | None = None


class BulkPaymentRequest(BaseModel):
    payroll_date: date
    entries: list[BulkPaymentEntry] = Field(min_length=1)
    notes: str | None = None


class BulkPaymentOutcome(BaseModel):
    employee_name: str
    amount: Decimal
    profile_id: int | None = None
    installment_id: int | None = None
    error: str | None = None

    @property
    def applied(self) -> bool:
        return self.installment_id is not None


class BulkPaymentResponse(BaseModel):
    batch_id: int | None
    total_amount: Decimal
    total_payments: int
    outcomes: list[BulkPaymentOutcome]


# --- Document Schemas ---

class DocumentAttach(BaseModel):
    """Reference to a file already uploaded to object storage."""
    installment_id: int | None = None
    storage_path: str = Field(min_length=1, max_length=500)
    file_name: str = Field(min_length=1, max_length=255)
    file_type: str = Field(min_length=1, max_length=100)
    file_size: int = Field(ge=0)
    description: str | None = None


class DocumentResponse(BaseModel):
    id: int
    profile_id: int
    installment_id: int | None
    storage_path: str
    file_name: str
    file_type: str
    file_size: int
    description: str | None
    uploaded_by: str | None
    uploaded_at: datetime

    model_config = {"from_attributes": True}
