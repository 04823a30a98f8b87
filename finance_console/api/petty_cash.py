"""
Petty cash API endpoints.
"""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from finance_console.api.deps import get_current_principal
from finance_console.errors import DomainError, to_http_error
from finance_console.models.base import get_db
from finance_console.models.enums import Permission
from finance_console.schemas.petty_cash import (
    PettyCashBalanceResponse,
    PettyCashCreate,
    PettyCashResponse,
)
from finance_console.security import Principal
from finance_console.services.petty_cash_service import PettyCashService

router = APIRouter(prefix="/petty-cash", tags=["Petty Cash"])


@router.post("/transactions", response_model=PettyCashResponse, status_code=201)
async def record_transaction(
    request: PettyCashCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Record cash into or out of the box."""
    service = PettyCashService(db)
    try:
        txn = await service.record_transaction(request, principal)
        await db.commit()
        return txn
    except DomainError as e:
        await db.rollback()
        raise to_http_error(e)


@router.get("/transactions", response_model=list[PettyCashResponse])
async def list_transactions(
    approved: bool | None = None,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    service = PettyCashService(db)
    try:
        principal.require(Permission.VIEW_FINANCES)
        return await service.list_transactions(approved=approved)
    except DomainError as e:
        raise to_http_error(e)


@router.post(
    "/transactions/{transaction_id}/approve", response_model=PettyCashResponse
)
async def approve_transaction(
    transaction_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    service = PettyCashService(db)
    try:
        txn = await service.approve_transaction(transaction_id, principal)
        await db.commit()
        return txn
    except DomainError as e:
        await db.rollback()
        raise to_http_error(e)


@router.delete("/transactions/{transaction_id}", status_code=204)
async def delete_transaction(
    transaction_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Delete a transaction that has not been approved yet."""
    service = PettyCashService(db)
    try:
        await service.delete_transaction(transaction_id, principal)
        await db.commit()
    except DomainError as e:
        await db.rollback()
        raise to_http_error(e)
    return Response(status_code=204)


@router.get("/balance", response_model=PettyCashBalanceResponse)
async def get_balance(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Balance of approved transactions, and how many await approval."""
    service = PettyCashService(db)
    try:
        principal.require(Permission.VIEW_FINANCES)
        return PettyCashBalanceResponse(
            balance=await service.balance(),
            pending_count=await service.pending_count(),
        )
    except DomainError as e:
        raise to_http_error(e)
