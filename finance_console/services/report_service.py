"""
Report service: data behind court-evidence documents.

The payment history, balance certification and affidavit all
render from the same PaymentHistoryReport: the profile, its
installments in payroll-date order, and the running paid and
balance after each one. Rendering is done elsewhere.

Compliance compares a profile's next court-ordered due date with
today:

    no due date         -> no-date
    completed profile   -> completed
    past due            -> overdue
    due within 3 days   -> due-soon
    due within 14 days  -> active
    later               -> current
"""

import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from finance_console.models.employee import Employee
from finance_console.models.enums import ComplianceStatus, ProfileStatus
from finance_console.models.garnishment_installment import GarnishmentInstallment
from finance_console.models.garnishment_profile import GarnishmentProfile
from finance_console.schemas.audit import (
    Compliance,
    PaymentHistoryLine,
    PaymentHistoryReport,
    ProfileCompliance,
)
from finance_console.schemas.garnishment import ProfileResponse
from finance_console.services.garnishment_service import GarnishmentService
from finance_console.services.ledger_aggregator import to_money, total

logger = logging.getLogger(__name__)


DUE_SOON_DAYS = 3
ACTIVE_WINDOW_DAYS = 14


def classify_compliance(
    status: ProfileStatus, next_due_date: date | None, today: date
) -> Compliance:
    if next_due_date is None:
        return Compliance(status=ComplianceStatus.NO_DATE, days_until_due=None)

    days = (next_due_date - today).days
    if status == ProfileStatus.COMPLETED:
        compliance = ComplianceStatus.COMPLETED
    elif days < 0:
        compliance = ComplianceStatus.OVERDUE
    elif days <= DUE_SOON_DAYS:
        compliance = ComplianceStatus.DUE_SOON
    elif days <= ACTIVE_WINDOW_DAYS:
        compliance = ComplianceStatus.ACTIVE
    else:
        compliance = ComplianceStatus.CURRENT
    return Compliance(status=compliance, days_until_due=days)


class ReportService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def payment_history(
        self, profile_id: int, today: date | None = None
    ) -> PaymentHistoryReport:
        today = today or date.today()
        profile = await GarnishmentService(self.db).get_profile(profile_id)
        employee = await self.db.get(Employee, profile.employee_id)

        result = await self.db.execute(
            select(GarnishmentInstallment)
            .where(GarnishmentInstallment.profile_id == profile.id)
            .order_by(
                GarnishmentInstallment.payroll_date,
                GarnishmentInstallment.installment_number,
            )
        )
        installments = list(result.scalars().all())

        owed = to_money(profile.total_amount_owed)
        lines = []
        for index, installment in enumerate(installments, start=1):
            running_paid = total(i.amount for i in installments[:index])
            lines.append(
                PaymentHistoryLine(
                    installment_number=installment.installment_number,
                    payroll_date=installment.payroll_date,
                    amount=to_money(installment.amount),
                    check_number=installment.check_number,
                    running_paid=running_paid,
                    running_balance=owed - running_paid,
                )
            )

        total_paid = total(i.amount for i in installments)
        logger.debug(
            "Payment history for profile %s: %s lines", profile.id, len(lines)
        )
        return PaymentHistoryReport(
            profile=ProfileResponse.model_validate(profile),
            employee_name=employee.name if employee else "",
            compliance=classify_compliance(
                profile.status, profile.next_due_date, today
            ),
            lines=lines,
            total_paid=total_paid,
            balance_remaining=owed - total_paid,
            generated_on=today,
        )

    async def compliance_overview(
        self, today: date | None = None
    ) -> list[ProfileCompliance]:
        """Open profiles by due date, most urgent first, undated last."""
        today = today or date.today()
        result = await self.db.execute(
            select(GarnishmentProfile)
            .where(GarnishmentProfile.status != ProfileStatus.COMPLETED)
            .order_by(GarnishmentProfile.case_number)
        )
        profiles = sorted(
            result.scalars().all(),
            key=lambda p: (p.next_due_date is None, p.next_due_date or today),
        )
        return [
            ProfileCompliance(
                profile_id=p.id,
                case_number=p.case_number,
                employee_id=p.employee_id,
                next_due_date=p.next_due_date,
                balance_remaining=to_money(p.balance_remaining),
                **classify_compliance(p.status, p.next_due_date, today).model_dump(),
            )
            for p in profiles
        ]
