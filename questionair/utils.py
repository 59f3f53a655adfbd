import logging
import re
from typing import Optional

from fastapi import Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import User
from .users import current_active_user

logger = logging.getLogger(__name__)

HHMM_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


# Dependency to enforce authentication
async def require_authenticated_user(user: User = Depends(current_active_user)) -> User:
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return user


async def get_counterpart(db: AsyncSession, user_id: str) -> Optional[User]:
    """The one other account in the system, if it exists."""
    return (
        await db.execute(select(User).where(User.id != user_id).order_by(User.created_at).limit(1))
    ).scalars().first()


def clean_text(value: Optional[str]) -> Optional[str]:
    """Trim, folding blank strings to None."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def is_hhmm(value: str) -> bool:
    return bool(HHMM_RE.match(value or ""))
