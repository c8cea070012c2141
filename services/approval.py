"""
Approve-then-pay for work request submissions, as a two-phase flow:

1. ``start_payment`` creates a PaymentIntent for the exact work request amount
   and records a PaymentAttempt (status ``awaiting_confirmation``).
2. The payer confirms with the provider outside this service.
3. ``finalize_after_payment`` verifies the intent with the provider and is the
   only place a work request becomes ``approved``. It is idempotent by payment
   intent id, so a client that lost the response can safely call it again.

Attempts that the provider reports as succeeded but that were never finalized
are surfaced by ``unfinalized_attempts`` for reconciliation.
"""
from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import Payment, PaymentAttempt, User, WorkRequest, WorkRequestSubmission
from schemas.events import DomainEvent, WorkRequestApproved
from schemas.payment import PaymentIntentInfo
from services import budget
from services.errors import PaymentNotConfirmedError, PermissionDeniedError, StateConflictError
from services.notifications import notify
from services.payments import PaymentGateway, from_minor_units, map_payment_status, to_minor_units
from services.repository import get_submission, get_user, get_work_request, new_id, payment_for_submission, utcnow
from services.review import load_reviewable
from services.workflow import Action, Role, WorkRequestStatus, next_status
from utils.logger import get_logger

log = get_logger("approval")

AWAITING = "awaiting_confirmation"
FINALIZED = "finalized"


async def _attempt_by_intent(session: AsyncSession, payment_intent_id: str) -> Optional[PaymentAttempt]:
    result = await session.execute(
        select(PaymentAttempt).where(PaymentAttempt.payment_intent_id == payment_intent_id)
    )
    return result.scalar_one_or_none()


def _intent_metadata(wr: WorkRequest, submission: WorkRequestSubmission) -> dict[str, str]:
    return {
        "work_request_id": wr.id,
        "submission_id": submission.id,
        "submission_version": str(submission.version),
        "business_id": wr.business_id,
        "contractor_id": wr.contractor_user_id,
    }


async def start_payment(
    session: AsyncSession,
    gateway: PaymentGateway,
    business: User,
    work_request_id: str,
    submission_id: str,
    submission_version: int,
) -> tuple[PaymentAttempt, PaymentIntentInfo]:
    wr, submission = await load_reviewable(session, business, work_request_id, submission_id, submission_version)
    # Fails fast with the same errors finalize would raise
    next_status(wr.status, Action.APPROVE, Role.BUSINESS)
    budget.ensure_can_spend(business, wr.amount)

    contractor = await get_user(session, wr.contractor_user_id)
    amount_minor = to_minor_units(wr.amount, wr.currency)
    intent = await gateway.create_intent(
        amount_minor=amount_minor,
        currency=wr.currency,
        description=f"Work request payment: {wr.title}",
        metadata=_intent_metadata(wr, submission),
        # One intent per reviewed version; retries reuse it
        idempotency_key=f"wr-{wr.id}-sub-{submission.id}-v{submission.version}",
        destination=contractor.stripe_connect_account_id,
    )

    attempt = await _attempt_by_intent(session, intent.id)
    if attempt is None:
        attempt = PaymentAttempt(
            id=new_id("pa"),
            work_request_id=wr.id,
            submission_id=submission.id,
            submission_version=submission.version,
            payment_intent_id=intent.id,
            amount_minor=amount_minor,
            currency=wr.currency,
            status=AWAITING,
            created_at=utcnow(),
        )
        session.add(attempt)
        await session.flush()
    log.info(
        "[WORK_REQUEST_PAYMENT] intent=%s workRequestId=%s amount=%s %s",
        intent.id, wr.id, amount_minor, wr.currency,
    )
    return attempt, intent


def _verify_intent(intent: PaymentIntentInfo, wr: WorkRequest, submission: WorkRequestSubmission) -> None:
    if intent.status != "succeeded":
        raise PaymentNotConfirmedError(
            f"Payment has not been confirmed (status: {intent.status})",
            extra={"paymentStatus": intent.status},
        )
    expected_minor = to_minor_units(wr.amount, wr.currency)
    if intent.amount != expected_minor or intent.currency.lower() != wr.currency.lower():
        raise StateConflictError(
            f"Payment amount {intent.amount} {intent.currency} does not match the work request "
            f"amount {expected_minor} {wr.currency}"
        )
    if intent.metadata.get("work_request_id") not in (None, wr.id):
        raise StateConflictError("Payment belongs to a different work request")
    if intent.metadata.get("submission_version") not in (None, str(submission.version)):
        raise StateConflictError("Payment was made for a different submission version")


async def finalize_after_payment(
    session: AsyncSession,
    gateway: PaymentGateway,
    business: User,
    work_request_id: str,
    submission_id: str,
    payment_intent_id: str,
    submission_version: int,
    review_notes: Optional[str] = None,
) -> tuple[WorkRequest, WorkRequestSubmission, Payment, bool, list[DomainEvent]]:
    """Returns (work request, submission, payment, already_finalized, events)."""
    attempt = await _attempt_by_intent(session, payment_intent_id)
    if attempt is not None and attempt.status == FINALIZED:
        if attempt.work_request_id != work_request_id or attempt.submission_id != submission_id:
            raise StateConflictError("Payment was already used to approve a different submission")
        wr = await get_work_request(session, work_request_id)
        if wr.business_id != business.id:
            raise PermissionDeniedError("Not authorized to approve this submission")
        submission = await get_submission(session, submission_id)
        payment = await payment_for_submission(session, submission_id)
        log.info("[WORK_REQUEST_APPROVED] intent=%s already finalized; returning existing state", payment_intent_id)
        return wr, submission, payment, True, []

    wr, submission = await load_reviewable(session, business, work_request_id, submission_id, submission_version)
    target = next_status(wr.status, Action.APPROVE, Role.BUSINESS)

    intent = await gateway.retrieve_intent(payment_intent_id)
    _verify_intent(intent, wr, submission)

    now = utcnow()
    if attempt is None:
        attempt = PaymentAttempt(
            id=new_id("pa"),
            work_request_id=wr.id,
            submission_id=submission.id,
            submission_version=submission.version,
            payment_intent_id=intent.id,
            amount_minor=intent.amount,
            currency=intent.currency,
            created_at=now,
        )
        session.add(attempt)
    attempt.status = FINALIZED
    attempt.review_notes = review_notes
    attempt.finalized_at = now

    wr.status = target.value
    wr.approved_at = now
    submission.status = "approved"
    submission.review_notes = review_notes
    submission.reviewed_at = now

    amount = from_minor_units(intent.amount, intent.currency)
    payment = Payment(
        id=new_id("pay"),
        amount=amount,
        currency=intent.currency,
        status=map_payment_status(intent.status, intent.transfer_succeeded),
        transfer_id=intent.id,
        business_id=wr.business_id,
        contractor_id=wr.contractor_user_id,
        related_submission_id=submission.id,
        created_at=now,
    )
    session.add(payment)
    budget.record_spend(business, amount)

    await notify(
        session,
        wr.contractor_user_id,
        "work_approved",
        "Work Approved",
        f'Your submission for "{wr.title}" has been approved and payment processed',
        related_id=wr.id,
        related_type="work_request",
    )
    await notify(
        session,
        wr.contractor_user_id,
        "payment_received",
        "Payment Received",
        f'Payment of {amount} {intent.currency.upper()} received for "{wr.title}"',
        related_id=payment.id,
        related_type="payment",
    )
    await session.flush()
    log.info(
        "[WORK_REQUEST_APPROVED] Submission %s approved after payment %s (workRequestId=%s)",
        submission.id, payment_intent_id, wr.id,
    )
    return wr, submission, payment, False, [
        WorkRequestApproved(work_request_id=wr.id, submission_id=submission.id, payment_id=payment.id)
    ]


async def sync_payment(session: AsyncSession, gateway: PaymentGateway, user: User, payment_id: str) -> Payment:
    """
    Pull the provider's view of a payment and update its status; a paid work
    request payment moves the work request from ``approved`` to ``paid``.
    """
    payment = await session.get(Payment, payment_id)
    if payment is None or user.id not in (payment.business_id, payment.contractor_id):
        raise PermissionDeniedError("Not authorized to view this payment")
    if not payment.transfer_id:
        return payment
    intent = await gateway.retrieve_intent(payment.transfer_id)
    payment.status = map_payment_status(intent.status, intent.transfer_succeeded, payment.status)
    if payment.status == "paid" and payment.related_submission_id:
        submission = await get_submission(session, payment.related_submission_id)
        wr = await get_work_request(session, submission.work_request_id)
        if wr.status == WorkRequestStatus.APPROVED.value:
            wr.status = WorkRequestStatus.PAID.value
            wr.paid_at = utcnow()
            log.info("[WORK_REQUEST_PAID] workRequestId=%s payment=%s", wr.id, payment.id)
    await session.flush()
    return payment


async def unfinalized_attempts(
    session: AsyncSession, gateway: PaymentGateway, business: User
) -> list[PaymentAttempt]:
    """Attempts whose payment the provider captured but whose approval never finalized."""
    result = await session.execute(
        select(PaymentAttempt)
        .join(WorkRequest, PaymentAttempt.work_request_id == WorkRequest.id)
        .where(WorkRequest.business_id == business.id, PaymentAttempt.status == AWAITING)
        .order_by(PaymentAttempt.created_at.asc())
    )
    stuck: list[PaymentAttempt] = []
    for attempt in result.scalars().all():
        intent = await gateway.retrieve_intent(attempt.payment_intent_id)
        if intent.status == "succeeded":
            log.warning(
                "[RECONCILIATION] intent=%s succeeded but work request %s was not finalized",
                attempt.payment_intent_id, attempt.work_request_id,
            )
            stuck.append(attempt)
    return stuck
