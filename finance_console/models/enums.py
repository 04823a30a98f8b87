"""
Shared enumerations for database models.

Using Python enums mapped to database enums ensures that
only valid values can be stored. An invalid status or
movement direction is caught at the database level, not
just in Python validation.
"""

import enum


class EntryType(str, enum.Enum):
    """Direction of a monetary movement."""
    CREDIT = "credit"
    DEBIT = "debit"


class ProfileStatus(str, enum.Enum):
    """Lifecycle of a garnishment profile."""
    ACTIVE = "active"
    SUSPENDED = "suspended"
    COMPLETED = "completed"


class ComplianceStatus(str, enum.Enum):
    """Where a profile stands against its next court-ordered due date."""
    NO_DATE = "no-date"
    COMPLETED = "completed"
    OVERDUE = "overdue"
    DUE_SOON = "due-soon"
    ACTIVE = "active"
    CURRENT = "current"


class AgencyType(str, enum.Enum):
    LAW_FIRM = "law_firm"
    COLLECTION_AGENCY = "collection_agency"


class ApprovalStatus(str, enum.Enum):
    """Approval chain shared by loan withdrawals and loan requests."""
    PENDING = "pending"
    APPROVED_MANAGER = "approved_manager"
    APPROVED_ADMIN = "approved_admin"
    REJECTED = "rejected"


class EmployeeRole(str, enum.Enum):
    EMPLOYEE = "employee"
    MANAGER = "manager"
    ADMIN = "admin"


class Permission(str, enum.Enum):
    VIEW_FINANCES = "VIEW_FINANCES"
    EDIT_TRANSACTIONS = "EDIT_TRANSACTIONS"
    DELETE_RECORDS = "DELETE_RECORDS"
    MANAGE_EMPLOYEES = "MANAGE_EMPLOYEES"
    APPROVE_TRANSACTIONS = "APPROVE_TRANSACTIONS"
    APPROVE_LARGE_LOANS = "APPROVE_LARGE_LOANS"


class EntityType(str, enum.Enum):
    """Record kinds whose status is governed by the transition guard."""
    GARNISHMENT_PROFILE = "garnishment_profile"
    LOAN_WITHDRAWAL = "loan_withdrawal"
    LOAN_REQUEST = "loan_request"
