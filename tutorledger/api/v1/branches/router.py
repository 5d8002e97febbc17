from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from tutorledger.auth.dependencies import get_branch_scope
from tutorledger.auth.rbac import check_permission, require_founder
from tutorledger.core.exceptions import ServiceError
from tutorledger.db.session import get_db

from .schemas import BranchCreate, BranchResponse
from . import service

router = APIRouter(prefix="/api/v1/branches", tags=["branches"])


@router.post(
    "",
    response_model=BranchResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_founder)],
)
async def create_branch(
    payload: BranchCreate,
    db: AsyncSession = Depends(get_db),
) -> BranchResponse:
    try:
        return await service.create_branch(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[BranchResponse],
    dependencies=[Depends(check_permission("branches", "read"))],
)
async def list_branches(
    active_only: bool = Query(True),
    db: AsyncSession = Depends(get_db),
    branch_id: Optional[UUID] = Depends(get_branch_scope),
) -> List[BranchResponse]:
    return await service.list_branches(db, branch_id=branch_id, active_only=active_only)


@router.get(
    "/{branch_id}",
    response_model=BranchResponse,
    dependencies=[Depends(check_permission("branches", "read"))],
)
async def get_branch(
    branch_id: UUID,
    db: AsyncSession = Depends(get_db),
    scope: Optional[UUID] = Depends(get_branch_scope),
) -> BranchResponse:
    obj = await service.get_branch(db, branch_id)
    if not obj or (scope is not None and obj.id != scope):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Branch not found")
    return obj
