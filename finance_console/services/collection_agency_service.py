"""
Collection agency service: the directory of law firms and agencies.

Like EmployeeService, this service only flushes. The router commits
on success and rolls back on a DomainError.
"""

import logging
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from finance_console.errors import NotFoundError, ValidationError
from finance_console.models.collection_agency import CollectionAgency
from finance_console.models.enums import Permission
from finance_console.schemas.collection_agency import AgencyCreate, AgencyUpdate
from finance_console.security import Principal
from finance_console.services.audit_service import AuditService, snapshot

logger = logging.getLogger(__name__)


AGENCY_TABLE = "collection_agencies"
AGENCY_FIELDS = [
    "name", "type", "address_line1", "address_line2", "city", "state",
    "zip_code", "contact_person", "phone", "fax", "email", "website",
    "social_media_linkedin", "social_media_facebook", "social_media_twitter",
    "notes", "active",
]
DUPLICATE_NAME = "A collection agency with this name already exists"


class CollectionAgencyService:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)

    async def get_agency(self, agency_id: int) -> CollectionAgency:
        agency = await self.db.get(CollectionAgency, agency_id)
        if not agency:
            raise NotFoundError(f"Collection agency {agency_id} not found")
        return agency

    async def list_agencies(
        self, include_inactive: bool = False
    ) -> list[CollectionAgency]:
        """The directory in name order. Deactivated entries are hidden by default."""
        query = select(CollectionAgency)
        if not include_inactive:
            query = query.where(CollectionAgency.active.is_(True))
        result = await self.db.execute(query.order_by(CollectionAgency.name))
        return list(result.scalars().all())

    async def _name_taken(self, name: str, exclude_id: int | None = None) -> bool:
        query = select(CollectionAgency.id).where(
            func.lower(CollectionAgency.name) == name.lower()
        )
        if exclude_id is not None:
            query = query.where(CollectionAgency.id != exclude_id)
        result = await self.db.execute(query)
        return result.first() is not None

    async def _flush(self) -> None:
        # The unique index still catches a racing insert of the same name
        try:
            await self.db.flush()
        except IntegrityError as e:
            raise ValidationError(DUPLICATE_NAME) from e

    async def create_agency(
        self, request: AgencyCreate, actor: Principal
    ) -> CollectionAgency:
        actor.require(Permission.EDIT_TRANSACTIONS)

        if await self._name_taken(request.name):
            raise ValidationError(DUPLICATE_NAME)

        agency = CollectionAgency(**request.model_dump(), active=True)
        self.db.add(agency)
        await self._flush()

        await self.audit.record(
            "AGENCY_CREATE", AGENCY_TABLE, agency.id,
            None, snapshot(agency, AGENCY_FIELDS), actor,
        )
        logger.info(
            "Added %s %s (%s)", agency.type.value, agency.name, agency.id
        )
        return agency

    async def update_agency(
        self, agency_id: int, request: AgencyUpdate, actor: Principal
    ) -> CollectionAgency:
        actor.require(Permission.EDIT_TRANSACTIONS)

        agency = await self.get_agency(agency_id)
        changes = request.model_dump(exclude_unset=True)
        if changes.get("name") is None:
            changes.pop("name", None)
        if changes.get("type") is None:
            changes.pop("type", None)
        if "name" in changes and await self._name_taken(changes["name"], agency.id):
            raise ValidationError(DUPLICATE_NAME)

        before = snapshot(agency, AGENCY_FIELDS)
        for field, value in changes.items():
            setattr(agency, field, value)
        agency.updated_at = datetime.utcnow()
        await self._flush()

        await self.audit.record(
            "AGENCY_UPDATE", AGENCY_TABLE, agency.id,
            before, snapshot(agency, AGENCY_FIELDS), actor,
        )
        logger.info("Updated collection agency %s", agency.id)
        return agency

    async def deactivate_agency(
        self, agency_id: int, actor: Principal
    ) -> CollectionAgency:
        """
        Remove an agency from the directory.

        The row stays so that profiles filed through it keep their
        reference. Deactivating an inactive agency is a no-op.
        """
        actor.require(Permission.DELETE_RECORDS)

        agency = await self.get_agency(agency_id)
        if not agency.active:
            return agency

        agency.active = False
        agency.updated_at = datetime.utcnow()
        await self.db.flush()

        await self.audit.record(
            "AGENCY_DEACTIVATE", AGENCY_TABLE, agency.id,
            {"active": True}, {"active": False}, actor,
        )
        logger.info("Deactivated collection agency %s", agency.id)
        return agency
