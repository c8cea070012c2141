from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user
from api.serializers import attempt_to_response, payment_to_response
from database import get_db
from models import User
from services import approval
from services.payments import PaymentGateway, get_payment_gateway

router = APIRouter(prefix="/api/payments", tags=["payments"])


@router.get("/reconciliation", response_model=list[dict])
async def list_unfinalized(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """Payments captured by the provider whose approval was never finalized."""
    attempts = await approval.unfinalized_attempts(db, gateway, user)
    return [attempt_to_response(a) for a in attempts]


@router.post("/{payment_id}/sync", response_model=dict)
async def sync_payment(
    payment_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    payment = await approval.sync_payment(db, gateway, user, payment_id)
    return payment_to_response(payment)
