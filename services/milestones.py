"""
Contracts and milestone review.

Milestone approval pays the contractor directly (destination charge). It is
idempotent per milestone: ``approved_at`` is set once, the provider call uses
``milestone-<id>`` as its idempotency key, and a second approval returns the
existing payment instead of creating another one.
"""
from __future__ import annotations

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from models import Contract, Milestone, Payment, User
from schemas.events import DomainEvent, MilestoneApproved, MilestoneRejected, MilestoneSubmitted
from schemas.milestone import ContractCreate, MilestoneCreate
from services import budget
from services.errors import PermissionDeniedError, ValidationFailedError
from services.notifications import notify
from services.payments import PaymentGateway, from_minor_units, map_payment_status, to_minor_units
from services.repository import get_contract, get_milestone, get_user, new_id, payment_for_milestone, utcnow
from services.review import require_feedback
from services.workflow import Action, MilestoneStatus, Role, next_milestone_status
from utils.logger import get_logger

log = get_logger("milestones")


async def create_contract(session: AsyncSession, business: User, body: ContractCreate) -> Contract:
    if business.role != Role.BUSINESS.value:
        raise PermissionDeniedError("Only business accounts can create contracts")
    contractor = await get_user(session, body.contractor_id)
    if contractor.role != Role.CONTRACTOR.value:
        raise ValidationFailedError("Contracts can only be made with contractors")
    contract = Contract(
        id=new_id("ctr"),
        business_id=business.id,
        contractor_id=contractor.id,
        project_id=body.project_id,
        name=body.name,
        value=body.value,
        currency=(body.currency or settings.default_currency).lower(),
        status="active",
        created_at=utcnow(),
    )
    session.add(contract)
    await session.flush()
    return contract


async def create_milestone(session: AsyncSession, business: User, contract_id: str, body: MilestoneCreate) -> Milestone:
    contract = await get_contract(session, contract_id)
    if contract.business_id != business.id:
        raise PermissionDeniedError("Access denied: Only the contract owner can add milestones")
    await budget.ensure_within_budget(session, business, body.payment_amount)
    milestone = Milestone(
        id=new_id("ms"),
        contract_id=contract.id,
        name=body.name,
        description=body.description,
        payment_amount=body.payment_amount,
        status=MilestoneStatus.PENDING.value,
        due_date=body.due_date,
        auto_pay_enabled=body.auto_pay_enabled,
    )
    session.add(milestone)
    await session.flush()
    return milestone


async def visible_milestone(session: AsyncSession, user: User, milestone_id: str) -> tuple[Milestone, Contract]:
    milestone = await get_milestone(session, milestone_id)
    contract = await get_contract(session, milestone.contract_id)
    if user.id not in (contract.business_id, contract.contractor_id):
        raise PermissionDeniedError("Access denied: Cannot access this milestone")
    return milestone, contract


async def submit_milestone(
    session: AsyncSession, contractor: User, milestone_id: str, deliverable_url: Optional[str]
) -> tuple[Milestone, list[DomainEvent]]:
    milestone = await get_milestone(session, milestone_id, for_update=True)
    contract = await get_contract(session, milestone.contract_id)
    if contract.contractor_id != contractor.id:
        raise PermissionDeniedError("Access denied: Only the assigned contractor can submit this milestone")
    action = Action.RESUBMIT if milestone.status == MilestoneStatus.REJECTED.value else Action.SUBMIT
    milestone.status = next_milestone_status(milestone.status, action, Role.CONTRACTOR).value
    milestone.deliverable_url = deliverable_url or milestone.deliverable_url
    milestone.submitted_at = utcnow()
    await notify(
        session,
        contract.business_id,
        "milestone_submitted",
        "Deliverable Submitted",
        f'"{milestone.name}" is ready for review',
        related_id=milestone.id,
        related_type="milestone",
    )
    await session.flush()
    return milestone, [MilestoneSubmitted(milestone_id=milestone.id, contract_id=contract.id)]


async def approve_milestone(
    session: AsyncSession,
    gateway: PaymentGateway,
    business: User,
    milestone_id: str,
    approval_notes: Optional[str] = None,
) -> tuple[Milestone, Optional[Payment], bool, list[DomainEvent]]:
    """Returns (milestone, payment, already_approved, events)."""
    milestone = await get_milestone(session, milestone_id, for_update=True)
    contract = await get_contract(session, milestone.contract_id)
    if contract.business_id != business.id:
        raise PermissionDeniedError("Access denied: Only the contract owner can approve milestones")

    if milestone.approved_at is not None:
        existing = await payment_for_milestone(session, milestone.id)
        log.info("[MILESTONE_APPROVE] milestone=%s already approved; no new payment", milestone.id)
        return milestone, existing, True, []

    target = next_milestone_status(milestone.status, Action.APPROVE, Role.BUSINESS)

    budget.ensure_can_spend(business, milestone.payment_amount)

    contractor = await get_user(session, contract.contractor_id)
    if not contractor.stripe_connect_account_id:
        raise ValidationFailedError(
            "Contractor not set up for payments. Approval needs the contractor to complete Stripe Connect onboarding."
        )

    intent = await gateway.create_intent(
        amount_minor=to_minor_units(milestone.payment_amount, contract.currency),
        currency=contract.currency,
        description=f"Payment for milestone: {milestone.name}",
        metadata={
            "milestone_id": milestone.id,
            "contract_id": contract.id,
            "business_id": business.id,
            "contractor_id": contractor.id,
            "payment_type": "milestone_completion",
        },
        idempotency_key=f"milestone-{milestone.id}",
        destination=contractor.stripe_connect_account_id,
    )

    now = utcnow()
    milestone.status = target.value
    milestone.approved_at = now
    milestone.approval_notes = approval_notes
    amount = from_minor_units(intent.amount, intent.currency)
    payment = Payment(
        id=new_id("pay"),
        amount=amount,
        currency=intent.currency,
        status=map_payment_status(intent.status, intent.transfer_succeeded),
        transfer_id=intent.id,
        business_id=business.id,
        contractor_id=contractor.id,
        related_milestone_id=milestone.id,
        created_at=now,
    )
    session.add(payment)
    budget.record_spend(business, amount)
    await notify(
        session,
        contractor.id,
        "milestone_approved",
        "Milestone Approved",
        f'"{milestone.name}" was approved; payment of {amount} {intent.currency.upper()} is processing',
        related_id=payment.id,
        related_type="payment",
    )
    await session.flush()
    log.info(
        "[MILESTONE_APPROVE] milestone=%s payment=%s intent=%s amount=%s",
        milestone.id, payment.id, intent.id, amount,
    )
    return milestone, payment, False, [
        MilestoneApproved(milestone_id=milestone.id, contract_id=contract.id, payment_id=payment.id)
    ]


async def reject_milestone(
    session: AsyncSession, business: User, milestone_id: str, notes: Optional[str]
) -> tuple[Milestone, list[DomainEvent]]:
    text = require_feedback(notes)
    milestone = await get_milestone(session, milestone_id, for_update=True)
    contract = await get_contract(session, milestone.contract_id)
    if contract.business_id != business.id:
        raise PermissionDeniedError("Access denied: Only contract owner can reject milestones")
    milestone.status = next_milestone_status(milestone.status, Action.REJECT, Role.BUSINESS).value
    milestone.rejected_at = utcnow()
    milestone.rejection_notes = text
    await notify(
        session,
        contract.contractor_id,
        "milestone_rejected",
        "Changes Requested",
        f'Changes requested for "{milestone.name}"',
        related_id=milestone.id,
        related_type="milestone",
    )
    await session.flush()
    return milestone, [MilestoneRejected(milestone_id=milestone.id, contract_id=contract.id)]
