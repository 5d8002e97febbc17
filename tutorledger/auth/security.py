from datetime import datetime, timedelta, timezone
from typing import Dict

from jose import jwt

from tutorledger.core.config import settings


def create_access_token(*, subject: Dict, expires_minutes: int = 15) -> str:
    """Sign a token carrying user_id, branch_id and role. Issuing tokens to users happens elsewhere."""
    to_encode = subject.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
