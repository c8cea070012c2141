from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user
from api.serializers import contract_to_response, events_to_response, milestone_to_response, payment_to_response
from database import get_db
from models import User
from schemas.milestone import ContractCreate, MilestoneApprove, MilestoneCreate, MilestoneReject, MilestoneSubmit
from services import milestones as milestone_service
from services.payments import PaymentGateway, get_payment_gateway

router = APIRouter(prefix="/api", tags=["milestones"])


@router.post("/contracts", response_model=dict, status_code=201)
async def create_contract(body: ContractCreate, db: AsyncSession = Depends(get_db), user: User = Depends(get_current_user)):
    contract = await milestone_service.create_contract(db, user, body)
    return contract_to_response(contract)


@router.post("/contracts/{contract_id}/milestones", response_model=dict, status_code=201)
async def create_milestone(
    contract_id: str,
    body: MilestoneCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    milestone = await milestone_service.create_milestone(db, user, contract_id, body)
    return milestone_to_response(milestone)


@router.get("/milestones/{milestone_id}", response_model=dict)
async def get_milestone(milestone_id: str, db: AsyncSession = Depends(get_db), user: User = Depends(get_current_user)):
    milestone, _ = await milestone_service.visible_milestone(db, user, milestone_id)
    return milestone_to_response(milestone)


@router.post("/milestones/{milestone_id}/submit", response_model=dict)
async def submit_milestone(
    milestone_id: str,
    body: MilestoneSubmit,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    milestone, events = await milestone_service.submit_milestone(db, user, milestone_id, body.deliverable_url)
    return {"milestone": milestone_to_response(milestone), "events": events_to_response(events)}


@router.post("/milestones/{milestone_id}/approve", response_model=dict)
async def approve_milestone(
    milestone_id: str,
    body: MilestoneApprove,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    milestone, payment, already, events = await milestone_service.approve_milestone(
        db, gateway, user, milestone_id, body.approval_notes
    )
    return {
        "message": "Milestone already approved" if already else "Milestone approved and payment processed successfully",
        "alreadyApproved": already,
        "milestone": milestone_to_response(milestone),
        "payment": payment_to_response(payment),
        "events": events_to_response(events),
    }


@router.post("/milestones/{milestone_id}/reject", response_model=dict)
async def reject_milestone(
    milestone_id: str,
    body: MilestoneReject,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    milestone, events = await milestone_service.reject_milestone(db, user, milestone_id, body.notes)
    return {"success": True, "milestone": milestone_to_response(milestone), "events": events_to_response(events)}
