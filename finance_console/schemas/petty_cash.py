"""
Pydantic schemas for petty cash operations.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from finance_console.models.enums import EntryType


class PettyCashCreate(BaseModel):
    transaction_date: date
    entry_type: EntryType
    amount: Decimal = Field(gt=0, decimal_places=2)
    purpose: str | None = Field(default=None, max_length=255)
    employee_id: int | None = None
    notes: str | None = None


class PettyCashResponse(BaseModel):
    id: int
    transaction_date: date
    entry_type: EntryType
    amount: Decimal
    purpose: str | None
    employee_id: int | None
    approved: bool
    notes: str | None
    created_by: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class PettyCashBalanceResponse(BaseModel):
    balance: Decimal
    pending_count: int
