from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user
from api.serializers import (
    attempt_to_response,
    events_to_response,
    payment_to_response,
    submission_to_response,
    work_request_to_response,
)
from database import get_db
from models import User
from schemas.payment import ApproveAfterPayment, PaymentIntentCreate
from schemas.work_request import ReviewRequest, SubmissionCreate
from services import approval
from services import review as review_service
from services import work_requests as wr_service
from services.payments import PaymentGateway, get_payment_gateway
from services.repository import list_submissions, latest_submission

router = APIRouter(prefix="/api/work-requests", tags=["work-requests"])


@router.get("/{work_request_id}", response_model=dict)
async def get_work_request(work_request_id: str, db: AsyncSession = Depends(get_db), user: User = Depends(get_current_user)):
    wr = await wr_service.visible_work_request(db, user, work_request_id)
    return work_request_to_response(wr, wr_service.role_on(wr, user))


@router.post("/{work_request_id}/accept", response_model=dict)
async def accept_work_request(work_request_id: str, db: AsyncSession = Depends(get_db), user: User = Depends(get_current_user)):
    wr, events = await wr_service.accept_work_request(db, user, work_request_id)
    return {
        "message": "Work request accepted successfully",
        "workRequest": work_request_to_response(wr, "contractor"),
        "contractId": wr.contract_id,
        "events": events_to_response(events),
    }


@router.post("/{work_request_id}/decline", response_model=dict)
async def decline_work_request(work_request_id: str, db: AsyncSession = Depends(get_db), user: User = Depends(get_current_user)):
    wr, events = await wr_service.decline_work_request(db, user, work_request_id)
    return {
        "message": "Work request declined",
        "workRequest": work_request_to_response(wr, "contractor"),
        "events": events_to_response(events),
    }


@router.post("/{work_request_id}/submissions", response_model=dict, status_code=201)
async def create_submission(
    work_request_id: str,
    body: SubmissionCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    submission, events = await wr_service.submit_work(db, user, work_request_id, body)
    return {
        "message": "Submission recorded" if submission.version == 1 else "Resubmission recorded",
        "submission": submission_to_response(submission),
        "events": events_to_response(events),
    }


@router.get("/{work_request_id}/submissions/latest", response_model=dict)
async def get_latest_submission(work_request_id: str, db: AsyncSession = Depends(get_db), user: User = Depends(get_current_user)):
    wr = await wr_service.visible_work_request(db, user, work_request_id)
    latest = await latest_submission(db, wr.id)
    if not latest:
        raise HTTPException(status_code=404, detail="No submissions yet")
    return {"submission": submission_to_response(latest)}


@router.get("/{work_request_id}/submissions", response_model=dict)
async def get_submissions(work_request_id: str, db: AsyncSession = Depends(get_db), user: User = Depends(get_current_user)):
    wr = await wr_service.visible_work_request(db, user, work_request_id)
    return {"submissions": [submission_to_response(s) for s in await list_submissions(db, wr.id)]}


@router.post("/{work_request_id}/submissions/{submission_id}/review", response_model=dict)
async def review_submission(
    work_request_id: str,
    submission_id: str,
    body: ReviewRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    wr, submission, events = await review_service.review_submission(db, user, work_request_id, submission_id, body)
    return {
        "message": "Submission rejected - contractor has been notified"
        if body.action == "reject"
        else "Changes requested - contractor has been notified",
        "workRequest": work_request_to_response(wr, "business"),
        "submission": submission_to_response(submission),
        "events": events_to_response(events),
    }


@router.post("/{work_request_id}/submissions/{submission_id}/payment-intent", response_model=dict, status_code=201)
async def create_payment_intent(
    work_request_id: str,
    submission_id: str,
    body: PaymentIntentCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    attempt, intent = await approval.start_payment(db, gateway, user, work_request_id, submission_id, body.submission_version)
    return {
        "paymentIntentId": intent.id,
        "clientSecret": intent.client_secret,
        "amount": attempt.amount_minor,
        "currency": attempt.currency,
        "description": intent.description,
        "metadata": intent.metadata,
        "attempt": attempt_to_response(attempt),
    }


@router.post("/{work_request_id}/submissions/{submission_id}/approve-after-payment", response_model=dict)
async def approve_after_payment(
    work_request_id: str,
    submission_id: str,
    body: ApproveAfterPayment,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    wr, submission, payment, already, events = await approval.finalize_after_payment(
        db,
        gateway,
        user,
        work_request_id,
        submission_id,
        body.payment_intent_id,
        body.submission_version,
        body.review_notes,
    )
    return {
        "message": "Work already approved" if already else "Work approved successfully",
        "alreadyFinalized": already,
        "workRequest": work_request_to_response(wr, "business"),
        "submission": submission_to_response(submission),
        "payment": payment_to_response(payment),
        "events": events_to_response(events),
    }
