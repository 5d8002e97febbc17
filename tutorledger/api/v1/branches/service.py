from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tutorledger.core.exceptions import ServiceError
from tutorledger.core.models import Branch

from .schemas import BranchCreate, BranchResponse


def _to_response(b: Branch) -> BranchResponse:
    return BranchResponse(
        id=b.id,
        name=b.name,
        code=b.code,
        address=b.address,
        phone=b.phone,
        is_active=b.is_active,
        created_at=b.created_at,
    )


async def create_branch(db: AsyncSession, payload: BranchCreate) -> BranchResponse:
    code = payload.code.strip().upper()
    existing = (await db.execute(select(Branch).where(Branch.code == code))).scalar_one_or_none()
    if existing:
        raise ServiceError(f"Branch code '{code}' already exists", status.HTTP_409_CONFLICT)
    try:
        branch = Branch(
            name=payload.name.strip(),
            code=code,
            address=(payload.address or "").strip() or None,
            phone=(payload.phone or "").strip() or None,
            is_active=True,
        )
        db.add(branch)
        await db.commit()
        await db.refresh(branch)
        return _to_response(branch)
    except IntegrityError:
        await db.rollback()
        raise ServiceError(f"Branch code '{code}' already exists", status.HTTP_409_CONFLICT)


async def list_branches(
    db: AsyncSession,
    branch_id: Optional[UUID] = None,
    active_only: bool = True,
) -> List[BranchResponse]:
    stmt = select(Branch)
    if branch_id is not None:
        stmt = stmt.where(Branch.id == branch_id)
    if active_only:
        stmt = stmt.where(Branch.is_active.is_(True))
    stmt = stmt.order_by(Branch.name)
    result = await db.execute(stmt)
    return [_to_response(b) for b in result.scalars().all()]


async def get_branch(db: AsyncSession, branch_id: UUID) -> Optional[BranchResponse]:
    branch = await db.get(Branch, branch_id)
    return _to_response(branch) if branch else None
