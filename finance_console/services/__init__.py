"""Business logic services."""

from finance_console.services.audit_service import AuditService
from finance_console.services.collection_agency_service import CollectionAgencyService
from finance_console.services.employee_service import EmployeeService
from finance_console.services.garnishment_service import GarnishmentService
from finance_console.services.loan_service import LoanService
from finance_console.services.petty_cash_service import PettyCashService
from finance_console.services.report_service import ReportService

__all__ = [
    "AuditService",
    "CollectionAgencyService",
    "EmployeeService",
    "GarnishmentService",
    "LoanService",
    "PettyCashService",
    "ReportService",
]
