"""
Loan service: the employee loan obligation tracker.

Withdrawals and repayments are pooled per employee:

    outstanding = sum(non-rejected withdrawals) - sum(repayments)

Pending withdrawals count. The money has already left the box, so
the only way a withdrawal stops counting is rejection.

A withdrawal that would take the employee's outstanding balance
over INTEREST_THRESHOLD is flagged as requiring interest. The flag
and the balance it was decided on are stored with the withdrawal
and never recomputed.

Every mutation of an employee's ledger runs in a unit of work keyed
on the employee and bumps the employee row's version, so two
repayments cannot both pass validation against the same balance.
"""

import logging
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from finance_console.errors import NotFoundError, PermissionDenied, ValidationError
from finance_console.models.employee import Employee
from finance_console.models.enums import ApprovalStatus, EntityType, Permission
from finance_console.models.loan import LoanRepayment, LoanRequest, LoanWithdrawal
from finance_console.schemas.loan import (
    ApprovalStatusUpdate,
    EmployeeLoanSummary,
    LoanRequestCreate,
    RepaymentCreate,
    WithdrawalCreate,
    WithdrawalEvaluation,
)
from finance_console.security import Principal
from finance_console.services.audit_service import AuditService, snapshot
from finance_console.services.ledger_aggregator import (
    ZERO,
    compute_balance,
    credits,
    debits,
    to_money,
    total,
)
from finance_console.services.status_guard import ensure_transition
from finance_console.services.unit_of_work import run_unit_of_work

logger = logging.getLogger(__name__)


INTEREST_THRESHOLD = Decimal("1000.00")
INTEREST_NOTE = "REQUIRES INTEREST - Exceeds $1,000 limit"

WITHDRAWAL_FIELDS = [
    "employee_id", "amount", "withdrawal_date", "due_date", "status",
    "total_outstanding_at_time", "requires_interest", "notes",
]
REPAYMENT_FIELDS = ["employee_id", "amount", "payroll_date", "notes"]
REQUEST_FIELDS = ["employee_id", "requested_amount", "purpose", "status", "notes"]


def decide_interest(outstanding: Decimal, amount: Decimal) -> bool:
    """True when outstanding + amount exceeds the threshold (strictly)."""
    return to_money(outstanding) + to_money(amount) > INTEREST_THRESHOLD


def counts_toward_outstanding(withdrawal: LoanWithdrawal) -> bool:
    return withdrawal.status != ApprovalStatus.REJECTED


def _employee_key(employee_id: int) -> tuple[str, int]:
    return ("employee_loans", employee_id)


class LoanService:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)

    # --- Reads ---

    async def _employee(self, employee_id: int, lock: bool = False) -> Employee:
        query = select(Employee).where(Employee.id == employee_id)
        if lock:
            query = query.with_for_update()
        result = await self.db.execute(
            query.execution_options(populate_existing=True)
        )
        employee = result.scalar_one_or_none()
        if not employee:
            raise NotFoundError(f"Employee {employee_id} not found")
        return employee

    async def list_withdrawals(self, employee_id: int) -> list[LoanWithdrawal]:
        await self._employee(employee_id)
        return await self._withdrawals(employee_id)

    async def list_repayments(self, employee_id: int) -> list[LoanRepayment]:
        await self._employee(employee_id)
        return await self._repayments(employee_id)

    async def _withdrawals(self, employee_id: int) -> list[LoanWithdrawal]:
        result = await self.db.execute(
            select(LoanWithdrawal)
            .where(LoanWithdrawal.employee_id == employee_id)
            .order_by(LoanWithdrawal.withdrawal_date, LoanWithdrawal.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def _repayments(self, employee_id: int) -> list[LoanRepayment]:
        result = await self.db.execute(
            select(LoanRepayment)
            .where(LoanRepayment.employee_id == employee_id)
            .order_by(LoanRepayment.payroll_date, LoanRepayment.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_requests(
        self, employee_id: int | None = None
    ) -> list[LoanRequest]:
        query = select(LoanRequest)
        if employee_id is not None:
            query = query.where(LoanRequest.employee_id == employee_id)
        result = await self.db.execute(
            query.order_by(LoanRequest.request_date.desc(), LoanRequest.id.desc())
        )
        return list(result.scalars().all())

    async def get_withdrawal(self, withdrawal_id: int) -> LoanWithdrawal:
        result = await self.db.execute(
            select(LoanWithdrawal)
            .where(LoanWithdrawal.id == withdrawal_id)
            .execution_options(populate_existing=True)
        )
        withdrawal = result.scalar_one_or_none()
        if not withdrawal:
            raise NotFoundError(f"Loan withdrawal {withdrawal_id} not found")
        return withdrawal

    async def get_request(self, request_id: int) -> LoanRequest:
        result = await self.db.execute(
            select(LoanRequest)
            .where(LoanRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        loan_request = result.scalar_one_or_none()
        if not loan_request:
            raise NotFoundError(f"Loan request {request_id} not found")
        return loan_request

    # --- Balance and decisions ---

    async def _outstanding(self, employee_id: int) -> Decimal:
        withdrawals = await self._withdrawals(employee_id)
        repayments = await self._repayments(employee_id)
        return compute_balance(
            credits(w for w in withdrawals if counts_toward_outstanding(w))
            + debits(repayments)
        )

    @staticmethod
    def _evaluation(outstanding: Decimal, amount: Decimal) -> WithdrawalEvaluation:
        return WithdrawalEvaluation(
            total_outstanding_at_time=outstanding,
            requires_interest=decide_interest(outstanding, amount),
        )

    @staticmethod
    def _check_repayment(outstanding: Decimal, amount: Decimal) -> None:
        if to_money(amount) > outstanding:
            raise ValidationError(
                f"Repayment amount {to_money(amount)} exceeds outstanding "
                f"balance of ${outstanding}"
            )

    async def outstanding_balance(self, employee_id: int) -> Decimal:
        """Non-rejected withdrawals minus all repayments."""
        await self._employee(employee_id)
        return await self._outstanding(employee_id)

    async def evaluate_withdrawal(
        self, employee_id: int, amount: Decimal
    ) -> WithdrawalEvaluation:
        outstanding = await self.outstanding_balance(employee_id)
        return self._evaluation(outstanding, amount)

    async def validate_repayment(
        self, employee_id: int, amount: Decimal
    ) -> Decimal:
        """Return the current outstanding balance, or reject the repayment."""
        outstanding = await self.outstanding_balance(employee_id)
        self._check_repayment(outstanding, amount)
        return outstanding

    async def employee_summary(self, employee_id: int) -> EmployeeLoanSummary:
        await self._employee(employee_id)
        withdrawals = [
            w for w in await self._withdrawals(employee_id)
            if counts_toward_outstanding(w)
        ]
        repayments = await self._repayments(employee_id)
        withdrawn = total(w.amount for w in withdrawals)
        repaid = total(r.amount for r in repayments)
        return EmployeeLoanSummary(
            employee_id=employee_id,
            total_withdrawn=withdrawn,
            total_repaid=repaid,
            outstanding_balance=compute_balance(
                credits(withdrawals) + debits(repayments)
            ),
        )

    # --- Mutations ---

    @staticmethod
    def _bump_ledger(employee: Employee) -> None:
        # Forces an UPDATE, and with it the loan_ledger_version check
        employee.updated_at = datetime.utcnow()

    async def record_withdrawal(
        self, request: WithdrawalCreate, actor: Principal
    ) -> LoanWithdrawal:
        """
        Record money lent to an employee.

        The withdrawal starts pending and carries the outstanding
        balance and interest decision that applied when it was made.
        """
        actor.require(Permission.EDIT_TRANSACTIONS)
        if request.due_date < request.withdrawal_date:
            raise ValidationError("Due date cannot be before the withdrawal date")

        async def work():
            employee = await self._employee(request.employee_id, lock=True)
            evaluation = self._evaluation(
                await self._outstanding(employee.id), request.amount
            )

            withdrawal = LoanWithdrawal(
                employee_id=employee.id,
                amount=to_money(request.amount),
                withdrawal_date=request.withdrawal_date,
                due_date=request.due_date,
                approved_by_name=request.approved_by_name,
                notes=request.notes,
                status=ApprovalStatus.PENDING,
                total_outstanding_at_time=evaluation.total_outstanding_at_time,
                requires_interest=evaluation.requires_interest,
                created_by=actor.id,
            )
            self.db.add(withdrawal)
            self._bump_ledger(employee)
            await self.db.flush()

            await self.audit.record(
                "LOAN_WITHDRAWAL_CREATE", "employee_loan_withdrawals",
                withdrawal.id, None, snapshot(withdrawal, WITHDRAWAL_FIELDS),
                actor,
            )
            return withdrawal

        withdrawal = await run_unit_of_work(
            self.db, _employee_key(request.employee_id), work
        )
        logger.info(
            "Recorded loan withdrawal %s of %s for employee %s "
            "(outstanding before %s, interest %s)",
            withdrawal.id, withdrawal.amount, withdrawal.employee_id,
            withdrawal.total_outstanding_at_time, withdrawal.requires_interest,
        )
        return withdrawal

    async def record_repayment(
        self, request: RepaymentCreate, actor: Principal
    ) -> LoanRepayment:
        """Record a payroll deduction against the employee's pooled balance."""
        actor.require(Permission.EDIT_TRANSACTIONS)

        async def work():
            employee = await self._employee(request.employee_id, lock=True)
            self._check_repayment(
                await self._outstanding(employee.id), request.amount
            )

            repayment = LoanRepayment(
                employee_id=employee.id,
                amount=to_money(request.amount),
                payroll_date=request.payroll_date,
                notes=request.notes,
                created_by=actor.id,
            )
            self.db.add(repayment)
            self._bump_ledger(employee)
            await self.db.flush()

            await self.audit.record(
                "LOAN_REPAYMENT_CREATE", "employee_loan_repayments",
                repayment.id, None, snapshot(repayment, REPAYMENT_FIELDS),
                actor,
            )
            return repayment

        repayment = await run_unit_of_work(
            self.db, _employee_key(request.employee_id), work
        )
        logger.info(
            "Recorded loan repayment %s of %s for employee %s",
            repayment.id, repayment.amount, repayment.employee_id,
        )
        return repayment

    async def submit_request(
        self, request: LoanRequestCreate, actor: Principal
    ) -> LoanRequest:
        """
        File a loan request for approval.

        When the projected balance after approval exceeds the
        threshold, the request is annotated with INTEREST_NOTE.
        """
        actor.require(Permission.EDIT_TRANSACTIONS)

        purpose = (request.purpose or "").strip()
        if not purpose:
            raise ValidationError("Purpose is required for a loan request")

        async def work():
            employee = await self._employee(request.employee_id)
            outstanding = await self._outstanding(employee.id)
            notes = None
            if decide_interest(outstanding, request.requested_amount):
                notes = INTEREST_NOTE

            loan_request = LoanRequest(
                employee_id=employee.id,
                requested_amount=to_money(request.requested_amount),
                purpose=purpose,
                request_date=request.request_date or date.today(),
                status=ApprovalStatus.PENDING,
                notes=notes,
                created_by=actor.id,
            )
            self.db.add(loan_request)
            await self.db.flush()

            await self.audit.record(
                "LOAN_REQUEST_CREATE", "employee_loan_requests",
                loan_request.id, None, snapshot(loan_request, REQUEST_FIELDS),
                actor,
            )
            return loan_request

        loan_request = await run_unit_of_work(
            self.db, _employee_key(request.employee_id), work
        )
        logger.info(
            "Loan request %s for %s filed for employee %s",
            loan_request.id, loan_request.requested_amount,
            loan_request.employee_id,
        )
        return loan_request

    @staticmethod
    def _authorize_approval(
        actor: Principal, target: ApprovalStatus, amount: Decimal
    ) -> None:
        """Managers approve, admins give final approval, approvers reject."""
        if target == ApprovalStatus.APPROVED_MANAGER:
            if not actor.can_approve_amount(to_money(amount)):
                raise PermissionDenied(
                    f"{actor.name} ({actor.role.value}) cannot approve "
                    f"loans of {to_money(amount)}"
                )
        elif target == ApprovalStatus.APPROVED_ADMIN:
            actor.require(Permission.APPROVE_LARGE_LOANS)
        else:
            actor.require(Permission.APPROVE_TRANSACTIONS)

    async def change_withdrawal_status(
        self,
        withdrawal_id: int,
        request: ApprovalStatusUpdate,
        actor: Principal,
    ) -> LoanWithdrawal:
        """
        Move a withdrawal along the approval chain.

        A rejection removes the withdrawal from the outstanding
        balance, so it is refused when repayments already recorded
        would leave the balance negative.
        """
        owner = await self.get_withdrawal(withdrawal_id)
        employee_id = owner.employee_id

        async def work():
            employee = await self._employee(employee_id, lock=True)
            withdrawal = await self.get_withdrawal(withdrawal_id)
            old_status = withdrawal.status
            ensure_transition(
                EntityType.LOAN_WITHDRAWAL, old_status, request.new_status
            )
            self._authorize_approval(actor, request.new_status, withdrawal.amount)

            if request.new_status == ApprovalStatus.REJECTED:
                outstanding = await self._outstanding(employee.id)
                if outstanding - to_money(withdrawal.amount) < ZERO:
                    raise ValidationError(
                        "Cannot reject this withdrawal: recorded repayments "
                        "would exceed the remaining withdrawals"
                    )

            withdrawal.status = request.new_status
            withdrawal.updated_at = datetime.utcnow()
            self._bump_ledger(employee)
            await self.db.flush()

            await self.audit.record(
                "LOAN_WITHDRAWAL_STATUS_CHANGE", "employee_loan_withdrawals",
                withdrawal.id, {"status": old_status},
                {"status": request.new_status}, actor,
            )
            return withdrawal

        withdrawal = await run_unit_of_work(
            self.db, _employee_key(employee_id), work
        )
        logger.info(
            "Loan withdrawal %s is now %s", withdrawal.id, withdrawal.status.value
        )
        return withdrawal

    async def change_request_status(
        self,
        request_id: int,
        request: ApprovalStatusUpdate,
        actor: Principal,
    ) -> LoanRequest:
        owner = await self.get_request(request_id)

        async def work():
            loan_request = await self.get_request(request_id)
            old_status = loan_request.status
            ensure_transition(
                EntityType.LOAN_REQUEST, old_status, request.new_status
            )
            self._authorize_approval(
                actor, request.new_status, loan_request.requested_amount
            )

            loan_request.status = request.new_status
            loan_request.updated_at = datetime.utcnow()
            await self.db.flush()

            await self.audit.record(
                "LOAN_REQUEST_STATUS_CHANGE", "employee_loan_requests",
                loan_request.id, {"status": old_status},
                {"status": request.new_status}, actor,
            )
            return loan_request

        loan_request = await run_unit_of_work(
            self.db, _employee_key(owner.employee_id), work
        )
        logger.info(
            "Loan request %s is now %s",
            loan_request.id, loan_request.status.value,
        )
        return loan_request
