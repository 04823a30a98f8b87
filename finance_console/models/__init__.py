"""
Database models package.

All models must be imported here so that Alembic can discover
them through Base.metadata when generating migrations.
"""

from finance_console.models.base import Base
from finance_console.models.enums import (
    EntryType,
    ProfileStatus,
    ComplianceStatus,
    AgencyType,
    ApprovalStatus,
    EmployeeRole,
    Permission,
    EntityType,
)
from finance_console.models.audit_log import AuditLog
from finance_console.models.employee import Employee
from finance_console.models.collection_agency import CollectionAgency
from finance_console.models.bulk_payment_batch import BulkPaymentBatch
from finance_console.models.garnishment_profile import GarnishmentProfile
from finance_console.models.garnishment_installment import GarnishmentInstallment
from finance_console.models.garnishment_document import GarnishmentDocument
from finance_console.models.loan import LoanWithdrawal, LoanRepayment, LoanRequest
from finance_console.models.petty_cash import PettyCashTransaction

__all__ = [
    "Base",
    "EntryType",
    "ProfileStatus",
    "ComplianceStatus",
    "AgencyType",
    "ApprovalStatus",
    "EmployeeRole",
    "Permission",
    "EntityType",
    "AuditLog",
    "Employee",
    "CollectionAgency",
    "BulkPaymentBatch",
    "GarnishmentProfile",
    "GarnishmentInstallment",
    "GarnishmentDocument",
    "LoanWithdrawal",
    "LoanRepayment",
    "LoanRequest",
    "PettyCashTransaction",
]
