"""
Employee service: lookup and registration of employees.
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from finance_console.errors import NotFoundError, ValidationError
from finance_console.models.employee import Employee
from finance_console.models.enums import Permission
from finance_console.schemas.employee import EmployeeCreate
from finance_console.security import Principal

logger = logging.getLogger(__name__)


class EmployeeService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_employee(
        self, request: EmployeeCreate, actor: Principal
    ) -> Employee:
        """Register an employee. Names must be unique among active employees."""
        actor.require(Permission.MANAGE_EMPLOYEES)

        existing = await self.find_by_name(request.name)
        if existing:
            raise ValidationError(
                f"Employee '{request.name}' already exists"
            )

        employee = Employee(name=request.name.strip(), role=request.role)
        self.db.add(employee)
        await self.db.flush()
        logger.info("Registered employee %s (%s)", employee.name, employee.id)
        return employee

    async def get_employee(self, employee_id: int) -> Employee:
        employee = await self.db.get(Employee, employee_id)
        if not employee:
            raise NotFoundError(f"Employee {employee_id} not found")
        return employee

    async def find_by_name(self, name: str) -> Employee | None:
        """Case-insensitive match on an active employee's name."""
        result = await self.db.execute(
            select(Employee).where(
                func.lower(Employee.name) == name.strip().lower(),
                Employee.active.is_(True),
            )
        )
        return result.scalars().first()

    async def list_employees(self) -> list[Employee]:
        result = await self.db.execute(
            select(Employee)
            .where(Employee.active.is_(True))
            .order_by(Employee.name)
        )
        return list(result.scalars().all())
