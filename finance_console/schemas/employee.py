"""
Pydantic schemas for employees.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from finance_console.models.enums import EmployeeRole


class EmployeeCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    role: EmployeeRole = EmployeeRole.EMPLOYEE


class EmployeeResponse(BaseModel):
    id: int
    external_id: uuid.UUID
    name: str
    role: EmployeeRole
    active: bool
    created_at: datetime

    model_config = {"from_attributes": True}
