"""In-app notifications written alongside workflow transitions."""
from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import Notification
from services.repository import new_id, utcnow


async def notify(
    session: AsyncSession,
    user_id: str,
    type: str,
    title: str,
    message: str,
    related_id: Optional[str] = None,
    related_type: Optional[str] = None,
) -> Notification:
    notification = Notification(
        id=new_id("ntf"),
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        related_id=related_id,
        related_type=related_type,
        read=False,
        created_at=utcnow(),
    )
    session.add(notification)
    return notification


async def list_for_user(session: AsyncSession, user_id: str, unread_only: bool = False) -> list[Notification]:
    stmt = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        stmt = stmt.where(Notification.read.is_(False))
    result = await session.execute(stmt.order_by(Notification.created_at.desc()))
    return list(result.scalars().all())
