from typing import Dict

from fastapi import Depends, HTTPException, status

from tutorledger.auth.dependencies import get_current_user
from tutorledger.auth.schemas import CurrentUser
from tutorledger.core.enums import UserRole

_ALL = {"create": True, "read": True, "update": True, "delete": True}
_READ = {"read": True}

ROLE_PERMISSIONS: Dict[UserRole, Dict[str, Dict[str, bool]]] = {
    UserRole.ADMIN: {
        "branches": _READ,
        "students": _ALL,
        "payments": _ALL,
        "revenue": _READ,
    },
    UserRole.ACCOUNTANT: {
        "students": _READ,
        "payments": {"create": True, "read": True, "update": True},
        "revenue": _READ,
    },
    UserRole.TEACHER: {
        "students": _READ,
        "payments": _READ,
    },
}


def check_permission(module: str, action: str):
    """
    Dependency factory to enforce a specific permission.

    Example:
        Depends(check_permission("payments", "create"))
    """

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> None:
        if current_user.role == UserRole.FOUNDER:
            return
        permissions = ROLE_PERMISSIONS.get(current_user.role, {})
        module_perms = permissions.get(module, {})
        if not module_perms.get(action, False):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )

    return _checker


async def require_founder(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Only founders manage branches."""
    if current_user.role != UserRole.FOUNDER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only a founder can perform this action",
        )
    return current_user
