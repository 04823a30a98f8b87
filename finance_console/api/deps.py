"""
Shared request dependencies.

Authentication happens at the upstream gateway, which forwards the
signed-in user as X-User-Id, X-User-Name and X-User-Role headers.
"""

from fastapi import Header, HTTPException

from finance_console.models.enums import EmployeeRole
from finance_console.security import Principal


async def get_current_principal(
    x_user_id: str | None = Header(default=None),
    x_user_name: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Principal:
    """Build the acting principal from the gateway headers."""
    if not x_user_id or not x_user_role:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        role = EmployeeRole(x_user_role.lower())
    except ValueError:
        raise HTTPException(
            status_code=403, detail=f"Unknown role '{x_user_role}'"
        )
    return Principal(id=x_user_id, name=x_user_name or x_user_id, role=role)
