"""
Audit trail API endpoints.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from finance_console.api.deps import get_current_principal
from finance_console.errors import DomainError, to_http_error
from finance_console.models.base import get_db
from finance_console.models.enums import Permission
from finance_console.schemas.audit import AuditLogResponse
from finance_console.security import Principal
from finance_console.services.audit_service import AuditService

router = APIRouter(prefix="/audit", tags=["Audit"])


@router.get("", response_model=list[AuditLogResponse])
async def audit_history(
    table_name: str | None = None,
    record_id: str | None = None,
    limit: int = Query(default=100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Audit entries, newest first, optionally narrowed to one record."""
    service = AuditService(db)
    try:
        principal.require(Permission.VIEW_FINANCES)
        return await service.history(
            table_name=table_name, record_id=record_id, limit=limit
        )
    except DomainError as e:
        raise to_http_error(e)
