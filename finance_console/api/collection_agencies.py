"""
Collection agency directory API endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from finance_console.api.deps import get_current_principal
from finance_console.errors import DomainError, to_http_error
from finance_console.models.base import get_db
from finance_console.models.enums import Permission
from finance_console.schemas.collection_agency import (
    AgencyCreate,
    AgencyResponse,
    AgencyUpdate,
)
from finance_console.security import Principal
from finance_console.services.collection_agency_service import CollectionAgencyService

router = APIRouter(prefix="/collection-agencies", tags=["Collection Agencies"])


@router.post("", response_model=AgencyResponse, status_code=201)
async def create_agency(
    request: AgencyCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Add a law firm or collection agency to the directory."""
    service = CollectionAgencyService(db)
    try:
        agency = await service.create_agency(request, principal)
        await db.commit()
        return agency
    except DomainError as e:
        await db.rollback()
        raise to_http_error(e)


@router.get("", response_model=list[AgencyResponse])
async def list_agencies(
    include_inactive: bool = False,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    service = CollectionAgencyService(db)
    try:
        principal.require(Permission.VIEW_FINANCES)
        return await service.list_agencies(include_inactive)
    except DomainError as e:
        raise to_http_error(e)


@router.get("/{agency_id}", response_model=AgencyResponse)
async def get_agency(
    agency_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    service = CollectionAgencyService(db)
    try:
        principal.require(Permission.VIEW_FINANCES)
        return await service.get_agency(agency_id)
    except DomainError as e:
        raise to_http_error(e)


@router.patch("/{agency_id}", response_model=AgencyResponse)
async def update_agency(
    agency_id: int,
    request: AgencyUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    service = CollectionAgencyService(db)
    try:
        agency = await service.update_agency(agency_id, request, principal)
        await db.commit()
        return agency
    except DomainError as e:
        await db.rollback()
        raise to_http_error(e)


@router.delete("/{agency_id}", response_model=AgencyResponse)
async def deactivate_agency(
    agency_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Soft delete: the agency leaves the directory but keeps its profiles."""
    service = CollectionAgencyService(db)
    try:
        agency = await service.deactivate_agency(agency_id, principal)
        await db.commit()
        return agency
    except DomainError as e:
        await db.rollback()
        raise to_http_error(e)
