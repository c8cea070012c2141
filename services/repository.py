"""Lookups used across services; each raises NotFoundError instead of returning None."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import Contract, Milestone, Payment, Project, User, WorkRequest, WorkRequestSubmission
from services.errors import NotFoundError


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def get_user(session: AsyncSession, user_id: str) -> User:
    user = await session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


async def get_project(session: AsyncSession, project_id: str) -> Project:
    project = await session.get(Project, project_id)
    if not project:
        raise NotFoundError("Project not found")
    return project


async def get_work_request(session: AsyncSession, work_request_id: str, *, for_update: bool = False) -> WorkRequest:
    stmt = select(WorkRequest).where(WorkRequest.id == work_request_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    wr = result.scalar_one_or_none()
    if not wr:
        raise NotFoundError("Work request not found")
    return wr


async def get_submission(session: AsyncSession, submission_id: str) -> WorkRequestSubmission:
    submission = await session.get(WorkRequestSubmission, submission_id)
    if not submission:
        raise NotFoundError("Submission not found")
    return submission


async def latest_submission(session: AsyncSession, work_request_id: str) -> Optional[WorkRequestSubmission]:
    result = await session.execute(
        select(WorkRequestSubmission)
        .where(WorkRequestSubmission.work_request_id == work_request_id)
        .order_by(WorkRequestSubmission.version.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def list_submissions(session: AsyncSession, work_request_id: str) -> list[WorkRequestSubmission]:
    result = await session.execute(
        select(WorkRequestSubmission)
        .where(WorkRequestSubmission.work_request_id == work_request_id)
        .order_by(WorkRequestSubmission.version.asc())
    )
    return list(result.scalars().all())


async def get_contract(session: AsyncSession, contract_id: str) -> Contract:
    contract = await session.get(Contract, contract_id)
    if not contract:
        raise NotFoundError("Contract not found")
    return contract


async def get_milestone(session: AsyncSession, milestone_id: str, *, for_update: bool = False) -> Milestone:
    stmt = select(Milestone).where(Milestone.id == milestone_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    milestone = result.scalar_one_or_none()
    if not milestone:
        raise NotFoundError("Milestone not found")
    return milestone


async def payment_for_milestone(session: AsyncSession, milestone_id: str) -> Optional[Payment]:
    result = await session.execute(select(Payment).where(Payment.related_milestone_id == milestone_id))
    return result.scalar_one_or_none()


async def payment_for_submission(session: AsyncSession, submission_id: str) -> Optional[Payment]:
    result = await session.execute(select(Payment).where(Payment.related_submission_id == submission_id))
    return result.scalar_one_or_none()
