"""
Employee model.

Employees are the subjects of garnishment profiles and the
borrowers of employee loans. The loan_ledger_version column is
the serialization point of an employee's loan ledger: every loan
mutation bumps it, so two concurrent writers cannot both commit
against the same outstanding balance.
"""

import uuid
from datetime import datetime

from sqlalchemy import String, Boolean, DateTime, Enum as SAEnum, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from finance_console.models.base import Base
from finance_console.models.enums import EmployeeRole


class Employee(Base):
    __tablename__ = "employees"

    id: Mapped[int] = mapped_column(primary_key=True)
    external_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, unique=True, nullable=False, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    role: Mapped[EmployeeRole] = mapped_column(
        SAEnum(EmployeeRole, name="employee_role_enum", create_constraint=True),
        nullable=False,
        default=EmployeeRole.EMPLOYEE,
    )
    active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    loan_ledger_version: Mapped[int] = mapped_column(nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __mapper_args__ = {"version_id_col": loan_ledger_version}

    def __repr__(self) -> str:
        return f"<Employee {self.name} ({self.role.value})>"
