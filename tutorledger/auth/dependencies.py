from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, Query, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from tutorledger.auth.schemas import CurrentUser
from tutorledger.core.config import settings
from tutorledger.core.enums import UserRole


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")


async def get_current_user(token: str = Depends(oauth2_scheme)) -> CurrentUser:
    """Resolve the caller's id, branch and role from the access token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        raise credentials_exception

    user_id_str = payload.get("user_id") or payload.get("sub")
    branch_id_str = payload.get("branch_id")
    role_name = payload.get("role")
    if not user_id_str or not role_name:
        raise credentials_exception

    try:
        user_id = UUID(user_id_str)
        role = UserRole(role_name)
        branch_id = UUID(branch_id_str) if branch_id_str else None
    except ValueError:
        raise credentials_exception

    # Everyone except a founder works inside exactly one branch
    if role != UserRole.FOUNDER and branch_id is None:
        raise credentials_exception

    return CurrentUser(id=user_id, branch_id=branch_id, role=role)


async def get_branch_scope(
    requested_branch: Optional[UUID] = Query(None, alias="branchId"),
    current_user: CurrentUser = Depends(get_current_user),
) -> Optional[UUID]:
    """
    Branch filter for the request, passed explicitly into every service call.

    Founders may pick a branch or see all (None); everyone else is pinned to their own.
    """
    if current_user.is_founder:
        return requested_branch
    return current_user.branch_id
