"""
Employee API endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from finance_console.api.deps import get_current_principal
from finance_console.errors import DomainError, to_http_error
from finance_console.models.base import get_db
from finance_console.models.enums import Permission
from finance_console.schemas.employee import EmployeeCreate, EmployeeResponse
from finance_console.security import Principal
from finance_console.services.employee_service import EmployeeService

router = APIRouter(prefix="/employees", tags=["Employees"])


@router.post("", response_model=EmployeeResponse, status_code=201)
async def create_employee(
    request: EmployeeCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Register an employee."""
    service = EmployeeService(db)
    try:
        employee = await service.create_employee(request, principal)
        await db.commit()
        return employee
    except DomainError as e:
        await db.rollback()
        raise to_http_error(e)


@router.get("", response_model=list[EmployeeResponse])
async def list_employees(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    service = EmployeeService(db)
    try:
        principal.require(Permission.VIEW_FINANCES)
        return await service.list_employees()
    except DomainError as e:
        raise to_http_error(e)


@router.get("/{employee_id}", response_model=EmployeeResponse)
async def get_employee(
    employee_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    service = EmployeeService(db)
    try:
        principal.require(Permission.VIEW_FINANCES)
        return await service.get_employee(employee_id)
    except DomainError as e:
        raise to_http_error(e)
