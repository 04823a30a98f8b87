"""
Acting principal and role-based permissions.

Authentication itself happens upstream. The session provider hands
us a principal (id, name, role); services check permissions against
it before mutating anything, so the rules hold whatever the caller.
"""

from dataclasses import dataclass
from decimal import Decimal

from finance_console.errors import PermissionDenied
from finance_console.models.enums import EmployeeRole, Permission


ROLE_PERMISSIONS: dict[EmployeeRole, frozenset[Permission]] = {
    EmployeeRole.EMPLOYEE: frozenset({Permission.VIEW_FINANCES}),
    EmployeeRole.MANAGER: frozenset({
        Permission.VIEW_FINANCES,
        Permission.EDIT_TRANSACTIONS,
        Permission.DELETE_RECORDS,
        Permission.APPROVE_TRANSACTIONS,
    }),
    EmployeeRole.ADMIN: frozenset({
        Permission.VIEW_FINANCES,
        Permission.EDIT_TRANSACTIONS,
        Permission.DELETE_RECORDS,
        Permission.APPROVE_TRANSACTIONS,
        Permission.APPROVE_LARGE_LOANS,
        Permission.MANAGE_EMPLOYEES,
    }),
}

# Loan approvals above this amount need APPROVE_LARGE_LOANS
LARGE_LOAN_APPROVAL_LIMIT = Decimal("500.00")


@dataclass(frozen=True)
class Principal:
    """The user performing an action, as supplied by the session provider."""
    id: str
    name: str
    role: EmployeeRole

    @property
    def permissions(self) -> frozenset[Permission]:
        return ROLE_PERMISSIONS.get(self.role, frozenset())

    def has(self, permission: Permission) -> bool:
        return permission in self.permissions

    def require(self, permission: Permission) -> None:
        """Raise PermissionDenied unless the principal holds the permission."""
        if not self.has(permission):
            raise PermissionDenied(
                f"{self.name} ({self.role.value}) lacks permission "
                f"{permission.value}"
            )

    def can_approve_amount(self, amount: Decimal) -> bool:
        if amount > LARGE_LOAN_APPROVAL_LIMIT:
            return self.has(Permission.APPROVE_LARGE_LOANS)
        return self.has(Permission.APPROVE_TRANSACTIONS)
