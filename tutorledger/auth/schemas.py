from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from tutorledger.core.enums import UserRole


class CurrentUser(BaseModel):
    """Identity decoded from the bearer token. branch_id is None only for founders."""

    id: UUID
    branch_id: Optional[UUID] = None
    role: UserRole

    @property
    def is_founder(self) -> bool:
        return self.role == UserRole.FOUNDER
