from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from models import User

MSG_AUTH_REQUIRED = "Authentication required"


async def get_current_user(
    x_user_id: Optional[str] = Header(None, alias="X-User-ID"),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the caller from the X-User-ID header; anything unknown is a 401."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail=MSG_AUTH_REQUIRED)
    user = await db.get(User, x_user_id)
    if not user:
        raise HTTPException(status_code=401, detail=MSG_AUTH_REQUIRED)
    return user
