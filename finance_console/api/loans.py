"""
Employee loan API endpoints.
"""

from decimal import Decimal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from finance_console.api.deps import get_current_principal
from finance_console.errors import DomainError, to_http_error
from finance_console.models.base import get_db
from finance_console.models.enums import Permission
from finance_console.schemas.loan import (
    ApprovalStatusUpdate,
    EmployeeLoanSummary,
    LoanRequestCreate,
    LoanRequestResponse,
    RepaymentCreate,
    RepaymentResponse,
    WithdrawalCreate,
    WithdrawalEvaluation,
    WithdrawalResponse,
)
from finance_console.security import Principal
from finance_console.services.loan_service import LoanService

router = APIRouter(prefix="/loans", tags=["Loans"])


@router.post("/withdrawals", response_model=WithdrawalResponse, status_code=201)
async def record_withdrawal(
    request: WithdrawalCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Record money lent to an employee."""
    service = LoanService(db)
    try:
        return await service.record_withdrawal(request, principal)
    except DomainError as e:
        raise to_http_error(e)


@router.patch(
    "/withdrawals/{withdrawal_id}/status", response_model=WithdrawalResponse
)
async def change_withdrawal_status(
    withdrawal_id: int,
    request: ApprovalStatusUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    service = LoanService(db)
    try:
        return await service.change_withdrawal_status(
            withdrawal_id, request, principal
        )
    except DomainError as e:
        raise to_http_error(e)


@router.post("/repayments", response_model=RepaymentResponse, status_code=201)
async def record_repayment(
    request: RepaymentCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Record a payroll deduction against an employee's loans."""
    service = LoanService(db)
    try:
        return await service.record_repayment(request, principal)
    except DomainError as e:
        raise to_http_error(e)


@router.post("/requests", response_model=LoanRequestResponse, status_code=201)
async def submit_request(
    request: LoanRequestCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    service = LoanService(db)
    try:
        return await service.submit_request(request, principal)
    except DomainError as e:
        raise to_http_error(e)


@router.get("/requests", response_model=list[LoanRequestResponse])
async def list_requests(
    employee_id: int | None = None,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    service = LoanService(db)
    try:
        principal.require(Permission.VIEW_FINANCES)
        return await service.list_requests(employee_id)
    except DomainError as e:
        raise to_http_error(e)


@router.patch("/requests/{request_id}/status", response_model=LoanRequestResponse)
async def change_request_status(
    request_id: int,
    request: ApprovalStatusUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    service = LoanService(db)
    try:
        return await service.change_request_status(request_id, request, principal)
    except DomainError as e:
        raise to_http_error(e)


@router.get(
    "/employees/{employee_id}/summary", response_model=EmployeeLoanSummary
)
async def employee_summary(
    employee_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Total withdrawn, total repaid and outstanding balance."""
    service = LoanService(db)
    try:
        principal.require(Permission.VIEW_FINANCES)
        return await service.employee_summary(employee_id)
    except DomainError as e:
        raise to_http_error(e)


@router.get(
    "/employees/{employee_id}/evaluate", response_model=WithdrawalEvaluation
)
async def evaluate_withdrawal(
    employee_id: int,
    amount: Decimal = Query(gt=0),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Preview the interest decision for a prospective withdrawal."""
    service = LoanService(db)
    try:
        principal.require(Permission.VIEW_FINANCES)
        return await service.evaluate_withdrawal(employee_id, amount)
    except DomainError as e:
        raise to_http_error(e)


@router.get(
    "/employees/{employee_id}/withdrawals",
    response_model=list[WithdrawalResponse],
)
async def list_withdrawals(
    employee_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    service = LoanService(db)
    try:
        principal.require(Permission.VIEW_FINANCES)
        return await service.list_withdrawals(employee_id)
    except DomainError as e:
        raise to_http_error(e)


@router.get(
    "/employees/{employee_id}/repayments",
    response_model=list[RepaymentResponse],
)
async def list_repayments(
    employee_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    service = LoanService(db)
    try:
        principal.require(Permission.VIEW_FINANCES)
        return await service.list_repayments(employee_id)
    except DomainError as e:
        raise to_http_error(e)
