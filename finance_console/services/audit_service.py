"""
Audit trail recorder.

Entries are added to the caller's session, so they commit or roll
back together with the change they describe. A mutation that is
rolled back leaves no audit entry behind, and a committed mutation
always has one.
"""

import enum
import logging
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from finance_console.models.audit_log import AuditLog
from finance_console.security import Principal

logger = logging.getLogger(__name__)


def _jsonable(value: Any) -> Any:
    """Render a column value so it can be stored in a JSON column."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, uuid.UUID):
        return str(value)
    return value


def snapshot(record, fields: list[str]) -> dict[str, Any]:
    """Capture the named fields of a record as JSON-safe values."""
    return {name: _jsonable(getattr(record, name)) for name in fields}


def changed_fields(
    old: dict[str, Any] | None, new: dict[str, Any] | None
) -> tuple[dict[str, Any] | None, dict[str, Any] | None]:
    """
    Trim two snapshots to the keys whose values differ.

    Keys present on only one side are kept on that side.
    """
    if old is None or new is None:
        return old, new
    old_out = {}
    new_out = {}
    for key in old.keys() | new.keys():
        if key in old and key in new and old[key] == new[key]:
            continue
        if key in old:
            old_out[key] = old[key]
        if key in new:
            new_out[key] = new[key]
    return old_out, new_out


class AuditService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        action: str,
        table_name: str,
        record_id,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        actor: Principal | None = None,
    ) -> AuditLog:
        """Append one audit entry holding only the changed fields."""
        old_values, new_values = changed_fields(
            {k: _jsonable(v) for k, v in old_values.items()}
            if old_values is not None else None,
            {k: _jsonable(v) for k, v in new_values.items()}
            if new_values is not None else None,
        )
        entry = AuditLog(
            action=action,
            table_name=table_name,
            record_id=str(record_id) if record_id is not None else None,
            old_values=old_values,
            new_values=new_values,
            actor_id=actor.id if actor else None,
            actor_name=actor.name if actor else None,
        )
        self.db.add(entry)
        await self.db.flush()
        logger.debug(
            "Audit %s on %s:%s by %s",
            action, table_name, record_id, entry.actor_name,
        )
        return entry

    async def history(
        self,
        table_name: str | None = None,
        record_id=None,
        limit: int | None = None,
    ) -> list[AuditLog]:
        """Return audit entries, newest first, optionally for one record."""
        query = select(AuditLog)
        if table_name is not None:
            query = query.where(AuditLog.table_name == table_name)
        if record_id is not None:
            query = query.where(AuditLog.record_id == str(record_id))
        query = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        if limit is not None:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())
