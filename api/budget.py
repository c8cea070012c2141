from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user
from api.serializers import budget_to_response, events_to_response
from database import get_db
from models import User
from schemas.budget import BudgetCheckRequest, BudgetUpdate
from schemas.events import BudgetChanged
from services import budget as budget_service
from services.workflow import Role

router = APIRouter(prefix="/api/budget", tags=["budget"])


def _require_business(user: User) -> None:
    if user.role != Role.BUSINESS.value:
        raise HTTPException(status_code=403, detail="Budgets are only available to business accounts")


async def _budget_response(db: AsyncSession, user: User) -> dict:
    allocated = await budget_service.allocated_for(db, user)
    remaining = None if user.budget_cap is None else user.budget_cap - allocated
    return budget_to_response(user, remaining)


@router.get("", response_model=dict)
async def get_budget(db: AsyncSession = Depends(get_db), user: User = Depends(get_current_user)):
    _require_business(user)
    return await _budget_response(db, user)


@router.put("", response_model=dict)
async def update_budget(body: BudgetUpdate, db: AsyncSession = Depends(get_db), user: User = Depends(get_current_user)):
    _require_business(user)
    await budget_service.update_budget_settings(
        db,
        user,
        budget_cap=body.budget_cap,
        budget_period=body.budget_period,
        budget_reset_enabled=body.budget_reset_enabled,
    )
    return {
        **await _budget_response(db, user),
        "events": events_to_response([BudgetChanged(business_id=user.id)]),
    }


@router.post("/reset", response_model=dict)
async def reset_budget(db: AsyncSession = Depends(get_db), user: User = Depends(get_current_user)):
    _require_business(user)
    await budget_service.reset_budget(db, user)
    return {
        **await _budget_response(db, user),
        "events": events_to_response([BudgetChanged(business_id=user.id)]),
    }


@router.post("/check", response_model=dict)
async def check_budget(body: BudgetCheckRequest, db: AsyncSession = Depends(get_db), user: User = Depends(get_current_user)):
    _require_business(user)
    allocated = await budget_service.allocated_for(db, user)
    result = budget_service.check_budget(body.proposed_value, user.budget_cap, allocated)
    return result.model_dump(mode="json")
