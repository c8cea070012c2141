"""
Submission review: only the latest version of a submission is reviewable, and
every review call names the version the reviewer was shown.
"""
from __future__ import annotations

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from models import User, WorkRequest, WorkRequestSubmission
from schemas.events import ChangesRequested, DomainEvent, SubmissionRejected
from schemas.work_request import ReviewRequest
from services.errors import PaymentNotConfirmedError, PermissionDeniedError, StateConflictError, ValidationFailedError
from services.notifications import notify
from services.repository import get_work_request, latest_submission, utcnow
from services.workflow import Action, Role, WorkRequestStatus, next_status
from utils.logger import get_logger

log = get_logger("review")


def require_feedback(notes: Optional[str]) -> str:
    """Reject / request-changes need feedback the contractor can act on."""
    text = (notes or "").strip()
    if not text:
        raise ValidationFailedError("Feedback is required when rejecting or requesting changes")
    return text


async def load_reviewable(
    session: AsyncSession,
    business: User,
    work_request_id: str,
    submission_id: str,
    submission_version: int,
) -> tuple[WorkRequest, WorkRequestSubmission]:
    """
    Load the work request and its latest submission, checking that the caller owns
    the work request and reviewed exactly that submission version.
    """
    wr = await get_work_request(session, work_request_id, for_update=True)
    if wr.business_id != business.id:
        raise PermissionDeniedError("Not authorized to review this submission")
    latest = await latest_submission(session, wr.id)
    if latest is None:
        raise StateConflictError("No submissions yet")
    if latest.id != submission_id or latest.version != submission_version:
        raise StateConflictError(
            f"Submission is stale: you reviewed version {submission_version} but the latest is "
            f"version {latest.version}. Refresh to see the latest submission.",
            extra={"latestVersion": latest.version, "latestSubmissionId": latest.id},
        )
    if latest.status != "submitted" or wr.status != WorkRequestStatus.SUBMITTED.value:
        raise StateConflictError("Submission has already been reviewed", extra={"status": wr.status})
    return wr, latest


async def review_submission(
    session: AsyncSession,
    business: User,
    work_request_id: str,
    submission_id: str,
    body: ReviewRequest,
) -> tuple[WorkRequest, WorkRequestSubmission, list[DomainEvent]]:
    if body.action == Action.APPROVE.value:
        # Approval is only finalized after the payment step succeeds
        raise PaymentNotConfirmedError(
            "Approval requires payment. Create a payment intent and finalize with approve-after-payment."
        )
    notes = require_feedback(body.review_notes)
    wr, submission = await load_reviewable(session, business, work_request_id, submission_id, body.submission_version)

    action = Action(body.action)
    wr.status = next_status(wr.status, action, Role.BUSINESS).value
    submission.status = wr.status
    submission.review_notes = notes
    submission.reviewed_at = utcnow()

    if action == Action.REJECT:
        event: DomainEvent = SubmissionRejected(work_request_id=wr.id, submission_id=submission.id)
        title, message = "Work Rejected", f'Your submission for "{wr.title}" was rejected'
    else:
        event = ChangesRequested(work_request_id=wr.id, submission_id=submission.id)
        title, message = "Changes Requested", f'Changes requested for "{wr.title}"'
    await notify(session, wr.contractor_user_id, f"work_{wr.status}", title, message, related_id=wr.id, related_type="work_request")
    await session.flush()
    log.info("[SUBMISSION_REVIEWED] workRequestId=%s submissionId=%s action=%s", wr.id, submission.id, action.value)
    return wr, submission, [event]
