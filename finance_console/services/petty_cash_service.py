"""
Petty cash service.

The box balance is derived, never stored: approved credits minus
approved debits, folded through the ledger aggregator. Pending
transactions are visible but do not move the balance until a
manager approves them.
"""

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from finance_console.errors import NotFoundError, ValidationError
from finance_console.models.enums import Permission
from finance_console.models.petty_cash import PettyCashTransaction
from finance_console.schemas.petty_cash import PettyCashCreate
from finance_console.security import Principal
from finance_console.services.audit_service import AuditService, snapshot
from finance_console.services.ledger_aggregator import (
    Movement,
    compute_balance,
    to_money,
)

logger = logging.getLogger(__name__)

TABLE = "petty_cash_transactions"
FIELDS = [
    "transaction_date", "entry_type", "amount", "purpose",
    "employee_id", "approved", "notes",
]


class PettyCashService:
    """Petty cash operations. Changes are flushed here and committed by the caller."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)

    async def get_transaction(self, transaction_id: int) -> PettyCashTransaction:
        txn = await self.db.get(PettyCashTransaction, transaction_id)
        if not txn:
            raise NotFoundError(f"Petty cash transaction {transaction_id} not found")
        return txn

    async def list_transactions(
        self, approved: bool | None = None
    ) -> list[PettyCashTransaction]:
        query = select(PettyCashTransaction)
        if approved is not None:
            query = query.where(PettyCashTransaction.approved.is_(approved))
        result = await self.db.execute(
            query.order_by(
                PettyCashTransaction.transaction_date.desc(),
                PettyCashTransaction.id.desc(),
            )
        )
        return list(result.scalars().all())

    async def record_transaction(
        self, request: PettyCashCreate, actor: Principal
    ) -> PettyCashTransaction:
        """Record cash in or out of the box, pending approval."""
        actor.require(Permission.EDIT_TRANSACTIONS)

        txn = PettyCashTransaction(
            transaction_date=request.transaction_date,
            entry_type=request.entry_type,
            amount=to_money(request.amount),
            purpose=request.purpose,
            employee_id=request.employee_id,
            approved=False,
            notes=request.notes,
            created_by=actor.id,
        )
        self.db.add(txn)
        await self.db.flush()
        await self.audit.record(
            "PETTY_CASH_CREATE", TABLE, txn.id, None, snapshot(txn, FIELDS), actor
        )
        logger.info(
            "Recorded petty cash %s of %s", txn.entry_type.value, txn.amount
        )
        return txn

    async def approve_transaction(
        self, transaction_id: int, actor: Principal
    ) -> PettyCashTransaction:
        actor.require(Permission.APPROVE_TRANSACTIONS)

        txn = await self.get_transaction(transaction_id)
        if txn.approved:
            raise ValidationError(
                f"Petty cash transaction {transaction_id} is already approved"
            )
        txn.approved = True
        txn.updated_at = datetime.utcnow()
        await self.db.flush()
        await self.audit.record(
            "PETTY_CASH_APPROVE", TABLE, txn.id,
            {"approved": False}, {"approved": True}, actor,
        )
        logger.info("Approved petty cash transaction %s", txn.id)
        return txn

    async def delete_transaction(
        self, transaction_id: int, actor: Principal
    ) -> None:
        """Remove a pending transaction. Approved ones are part of the box history."""
        actor.require(Permission.DELETE_RECORDS)

        txn = await self.get_transaction(transaction_id)
        if txn.approved:
            raise ValidationError(
                "Approved petty cash transactions cannot be deleted"
            )
        removed = snapshot(txn, FIELDS)
        await self.db.delete(txn)
        await self.db.flush()
        await self.audit.record(
            "PETTY_CASH_DELETE", TABLE, transaction_id, removed, None, actor
        )
        logger.info("Deleted petty cash transaction %s", transaction_id)

    async def balance(self) -> Decimal:
        result = await self.db.execute(select(PettyCashTransaction))
        return compute_balance(
            (
                Movement(txn.amount, txn.entry_type, txn)
                for txn in result.scalars().all()
            ),
            predicate=lambda m: m.source.approved,
        )

    async def pending_count(self) -> int:
        return len(await self.list_transactions(approved=False))
