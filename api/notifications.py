from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user
from api.serializers import notification_to_response
from database import get_db
from models import User
from services.notifications import list_for_user

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=list[dict])
async def list_notifications(
    unread: bool = False,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return [notification_to_response(n) for n in await list_for_user(db, user.id, unread_only=unread)]
