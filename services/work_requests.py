"""
Projects, work request assignment, contractor responses and submissions.

Every mutation returns the domain events it produced alongside the changed
rows; the routers pass those back to the caller.
"""
from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from models import Contract, Project, User, WorkRequest, WorkRequestSubmission
from schemas.events import DomainEvent, SubmissionCreated, WorkRequestAccepted, WorkRequestCreated, WorkRequestDeclined
from schemas.work_request import ProjectCreate, SubmissionCreate, WorkRequestCreate
from services import budget
from services.errors import PermissionDeniedError, ValidationFailedError
from services.notifications import notify
from services.repository import get_project, get_user, get_work_request, latest_submission, new_id, utcnow
from services.workflow import Action, Role, WorkRequestStatus, next_status
from utils.logger import get_logger

log = get_logger("work_requests")


def require_role(user: User, role: Role, message: str) -> None:
    if user.role != role.value:
        raise PermissionDeniedError(message)


async def create_project(session: AsyncSession, business: User, body: ProjectCreate) -> Project:
    require_role(business, Role.BUSINESS, "Only business accounts can create projects")
    project = Project(
        id=new_id("prj"),
        business_id=business.id,
        name=body.name,
        description=body.description,
        budget=body.budget,
        status="active",
        created_at=utcnow(),
    )
    session.add(project)
    await session.flush()
    return project


async def list_project_work_requests(session: AsyncSession, user: User, project_id: str) -> list[WorkRequest]:
    project = await get_project(session, project_id)
    stmt = select(WorkRequest).where(WorkRequest.project_id == project.id)
    if user.id != project.business_id:
        # Contractors only see what is assigned to them
        stmt = stmt.where(WorkRequest.contractor_user_id == user.id)
    result = await session.execute(stmt.order_by(WorkRequest.created_at.desc()))
    return list(result.scalars().all())


async def create_work_request(
    session: AsyncSession, business: User, project_id: str, body: WorkRequestCreate
) -> tuple[WorkRequest, list[DomainEvent]]:
    project = await get_project(session, project_id)
    if project.business_id != business.id:
        raise PermissionDeniedError("Not authorized to add work to this project")
    contractor = await get_user(session, body.contractor_user_id)
    if contractor.role != Role.CONTRACTOR.value:
        raise ValidationFailedError("Work requests can only be assigned to contractors")

    await budget.ensure_within_budget(session, business, body.amount)

    now = utcnow()
    wr = WorkRequest(
        id=new_id("wr"),
        project_id=project.id,
        business_id=business.id,
        contractor_user_id=contractor.id,
        title=body.title,
        description=body.description,
        deliverable_description=body.deliverable_description,
        amount=body.amount,
        currency=body.currency or settings.default_currency,
        due_date=body.due_date,
        status=WorkRequestStatus.PENDING.value,
        created_at=now,
    )
    session.add(wr)
    await notify(
        session,
        contractor.id,
        "work_request_assigned",
        "New Work Request",
        f'You have been assigned "{wr.title}"',
        related_id=wr.id,
        related_type="work_request",
    )
    await session.flush()
    log.info("[WR_CREATE] project=%s business=%s contractor=%s amount=%s", project.id, business.id, contractor.id, wr.amount)
    return wr, [WorkRequestCreated(work_request_id=wr.id, project_id=project.id)]


def _ensure_assigned(wr: WorkRequest, user: User, verb: str) -> None:
    if wr.contractor_user_id != user.id:
        raise PermissionDeniedError(f"You can only {verb} work requests assigned to you")


async def accept_work_request(
    session: AsyncSession, contractor: User, work_request_id: str
) -> tuple[WorkRequest, list[DomainEvent]]:
    wr = await get_work_request(session, work_request_id, for_update=True)
    _ensure_assigned(wr, contractor, "accept")
    wr.status = next_status(wr.status, Action.ACCEPT, Role.CONTRACTOR).value
    now = utcnow()
    wr.accepted_at = now

    contract = Contract(
        id=new_id("ctr"),
        business_id=wr.business_id,
        contractor_id=contractor.id,
        project_id=wr.project_id,
        name=wr.title,
        value=wr.amount,
        currency=wr.currency,
        status="active",
        created_at=now,
    )
    session.add(contract)
    wr.contract_id = contract.id
    await notify(
        session,
        wr.business_id,
        "work_request_accepted",
        "Work Request Accepted",
        f'"{wr.title}" was accepted by the contractor',
        related_id=wr.id,
        related_type="work_request",
    )
    await session.flush()
    log.info("[WORK_REQUEST_ACCEPTED] workRequestId=%s contractorId=%s contractId=%s", wr.id, contractor.id, contract.id)
    return wr, [WorkRequestAccepted(work_request_id=wr.id, project_id=wr.project_id)]


async def decline_work_request(
    session: AsyncSession, contractor: User, work_request_id: str
) -> tuple[WorkRequest, list[DomainEvent]]:
    wr = await get_work_request(session, work_request_id, for_update=True)
    _ensure_assigned(wr, contractor, "decline")
    wr.status = next_status(wr.status, Action.DECLINE, Role.CONTRACTOR).value
    wr.declined_at = utcnow()
    await notify(
        session,
        wr.business_id,
        "work_request_declined",
        "Work Request Declined",
        f'"{wr.title}" was declined by the contractor',
        related_id=wr.id,
        related_type="work_request",
    )
    await session.flush()
    log.info("[WORK_REQUEST_DECLINED] workRequestId=%s contractorId=%s", wr.id, contractor.id)
    return wr, [WorkRequestDeclined(work_request_id=wr.id, project_id=wr.project_id)]


async def submit_work(
    session: AsyncSession, contractor: User, work_request_id: str, body: SubmissionCreate
) -> tuple[WorkRequestSubmission, list[DomainEvent]]:
    """First submission from ``accepted`` or a resubmission from ``needs_revision``."""
    wr = await get_work_request(session, work_request_id, for_update=True)
    if wr.contractor_user_id != contractor.id:
        raise PermissionDeniedError("Not authorized to submit for this work request")
    action = Action.RESUBMIT if wr.status == WorkRequestStatus.NEEDS_REVISION.value else Action.SUBMIT
    target = next_status(wr.status, action, Role.CONTRACTOR)
    if body.submission_type == "digital" and not (body.artifact_url or body.deliverable_files):
        raise ValidationFailedError("Digital submissions need an artifact URL or at least one file")

    previous = await latest_submission(session, wr.id)
    version = previous.version + 1 if previous else 1
    submission = WorkRequestSubmission(
        id=new_id("sub"),
        work_request_id=wr.id,
        submitted_by=contractor.id,
        version=version,
        submission_type=body.submission_type,
        artifact_url=body.artifact_url,
        deliverable_files=body.deliverable_files,
        deliverable_description=body.deliverable_description,
        notes=body.notes,
        status="submitted",
        submitted_at=utcnow(),
    )
    session.add(submission)
    wr.status = target.value
    await notify(
        session,
        wr.business_id,
        "work_submitted",
        "Work Submitted",
        f"{wr.title} has been submitted by contractor" if version == 1 else f"{wr.title} has been resubmitted (version {version})",
        related_id=wr.id,
        related_type="work_request",
    )
    await session.flush()
    log.info("[WORK_SUBMITTED] workRequestId=%s submissionId=%s version=%s", wr.id, submission.id, version)
    return submission, [SubmissionCreated(work_request_id=wr.id, submission_id=submission.id, version=version)]


async def visible_work_request(session: AsyncSession, user: User, work_request_id: str) -> WorkRequest:
    wr = await get_work_request(session, work_request_id)
    if user.id not in (wr.business_id, wr.contractor_user_id):
        raise PermissionDeniedError("Not authorized to view this work request")
    return wr


def role_on(wr: WorkRequest, user: User) -> Optional[str]:
    if user.id == wr.business_id:
        return Role.BUSINESS.value
    if user.id == wr.contractor_user_id:
        return Role.CONTRACTOR.value
    return None
