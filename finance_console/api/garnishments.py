"""
Garnishment API endpoints.

Profiles, installments, bulk payroll payments, document references,
the payment history report and the compliance overview. The service
commits each mutation itself, so these handlers only translate errors.
"""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from finance_console.api.deps import get_current_principal
from finance_console.errors import DomainError, to_http_error
from finance_console.models.base import get_db
from finance_console.models.enums import Permission, ProfileStatus
from finance_console.schemas.audit import PaymentHistoryReport, ProfileCompliance
from finance_console.schemas.garnishment import (
    BulkPaymentRequest,
    BulkPaymentResponse,
    DocumentAttach,
    DocumentResponse,
    InstallmentCreate,
    InstallmentResponse,
    InstallmentUpdate,
    ProfileCreate,
    ProfileResponse,
    ProfileStatusUpdate,
)
from finance_console.security import Principal
from finance_console.services.garnishment_service import GarnishmentService
from finance_console.services.report_service import ReportService

router = APIRouter(prefix="/garnishments", tags=["Garnishments"])


# --- Profiles ---

@router.post("/profiles", response_model=ProfileResponse, status_code=201)
async def create_profile(
    request: ProfileCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Open a garnishment case against an employee."""
    service = GarnishmentService(db)
    try:
        return await service.create_profile(request, principal)
    except DomainError as e:
        raise to_http_error(e)


@router.get("/profiles", response_model=list[ProfileResponse])
async def list_profiles(
    status: ProfileStatus | None = None,
    employee_id: int | None = None,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    service = GarnishmentService(db)
    try:
        principal.require(Permission.VIEW_FINANCES)
        return await service.list_profiles(status=status, employee_id=employee_id)
    except DomainError as e:
        raise to_http_error(e)


@router.get("/profiles/{profile_id}", response_model=ProfileResponse)
async def get_profile(
    profile_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    service = GarnishmentService(db)
    try:
        principal.require(Permission.VIEW_FINANCES)
        return await service.get_profile(profile_id)
    except DomainError as e:
        raise to_http_error(e)


@router.patch("/profiles/{profile_id}/status", response_model=ProfileResponse)
async def change_profile_status(
    profile_id: int,
    request: ProfileStatusUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Suspend, reactivate, or complete a profile."""
    service = GarnishmentService(db)
    try:
        return await service.change_profile_status(profile_id, request, principal)
    except DomainError as e:
        raise to_http_error(e)


@router.delete("/profiles/{profile_id}", status_code=204)
async def delete_profile(
    profile_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    service = GarnishmentService(db)
    try:
        await service.delete_profile(profile_id, principal)
    except DomainError as e:
        raise to_http_error(e)
    return Response(status_code=204)


@router.post("/profiles/{profile_id}/reconcile", response_model=ProfileResponse)
async def reconcile_profile(
    profile_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Recompute a profile's paid and balance from its installments."""
    service = GarnishmentService(db)
    try:
        return await service.reconcile_profile(profile_id, principal)
    except DomainError as e:
        raise to_http_error(e)


# --- Installments ---

@router.get(
    "/profiles/{profile_id}/installments",
    response_model=list[InstallmentResponse],
)
async def list_installments(
    profile_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    service = GarnishmentService(db)
    try:
        principal.require(Permission.VIEW_FINANCES)
        return await service.list_installments(profile_id)
    except DomainError as e:
        raise to_http_error(e)


@router.post(
    "/profiles/{profile_id}/installments",
    response_model=InstallmentResponse,
    status_code=201,
)
async def create_installment(
    profile_id: int,
    request: InstallmentCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Record a payment against a profile."""
    service = GarnishmentService(db)
    try:
        return await service.create_installment(profile_id, request, principal)
    except DomainError as e:
        raise to_http_error(e)


@router.put("/installments/{installment_id}", response_model=InstallmentResponse)
async def update_installment(
    installment_id: int,
    request: InstallmentUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Correct a recorded installment."""
    service = GarnishmentService(db)
    try:
        return await service.update_installment(installment_id, request, principal)
    except DomainError as e:
        raise to_http_error(e)


@router.post("/bulk-payments", response_model=BulkPaymentResponse)
async def process_bulk_payments(
    request: BulkPaymentRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """
    Apply a payroll run's payments.

    Always answers 200 once the batch is processed; the outcome of
    each entry says whether it was applied.
    """
    service = GarnishmentService(db)
    try:
        return await service.process_bulk_payments(request, principal)
    except DomainError as e:
        raise to_http_error(e)


# --- Documents and reports ---

@router.post(
    "/profiles/{profile_id}/documents",
    response_model=DocumentResponse,
    status_code=201,
)
async def attach_document(
    profile_id: int,
    request: DocumentAttach,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    service = GarnishmentService(db)
    try:
        return await service.attach_document(profile_id, request, principal)
    except DomainError as e:
        raise to_http_error(e)


@router.get(
    "/profiles/{profile_id}/documents",
    response_model=list[DocumentResponse],
)
async def list_documents(
    profile_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    service = GarnishmentService(db)
    try:
        principal.require(Permission.VIEW_FINANCES)
        return await service.list_documents(profile_id)
    except DomainError as e:
        raise to_http_error(e)


@router.get(
    "/profiles/{profile_id}/payment-history",
    response_model=PaymentHistoryReport,
)
async def payment_history(
    profile_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Data for the payment history and balance certification documents."""
    service = ReportService(db)
    try:
        principal.require(Permission.VIEW_FINANCES)
        return await service.payment_history(profile_id)
    except DomainError as e:
        raise to_http_error(e)


@router.get("/compliance", response_model=list[ProfileCompliance])
async def compliance_overview(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Open profiles with their due-date standing, most urgent first."""
    service = ReportService(db)
    try:
        principal.require(Permission.VIEW_FINANCES)
        return await service.compliance_overview()
    except DomainError as e:
        raise to_http_error(e)
