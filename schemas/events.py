"""
Typed domain events published after each successful mutation.

Views subscribe to the event classes that affect their data instead of
invalidating broad groups of cached queries.
"""
from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


class DomainEvent(BaseModel):
    type: str

    model_config = {"frozen": True}


class WorkRequestCreated(DomainEvent):
    type: Literal["work_request.created"] = "work_request.created"
    work_request_id: str
    project_id: str


class WorkRequestAccepted(DomainEvent):
    type: Literal["work_request.accepted"] = "work_request.accepted"
    work_request_id: str
    project_id: str


class WorkRequestDeclined(DomainEvent):
    type: Literal["work_request.declined"] = "work_request.declined"
    work_request_id: str
    project_id: str


class SubmissionCreated(DomainEvent):
    type: Literal["submission.created"] = "submission.created"
    work_request_id: str
    submission_id: str
    version: int


class ChangesRequested(DomainEvent):
    type: Literal["submission.changes_requested"] = "submission.changes_requested"
    work_request_id: str
    submission_id: str


class SubmissionRejected(DomainEvent):
    type: Literal["submission.rejected"] = "submission.rejected"
    work_request_id: str
    submission_id: str


class WorkRequestApproved(DomainEvent):
    type: Literal["work_request.approved"] = "work_request.approved"
    work_request_id: str
    submission_id: str
    payment_id: Optional[str] = None


class MilestoneSubmitted(DomainEvent):
    type: Literal["milestone.submitted"] = "milestone.submitted"
    milestone_id: str
    contract_id: str


class MilestoneApproved(DomainEvent):
    type: Literal["milestone.approved"] = "milestone.approved"
    milestone_id: str
    contract_id: str
    payment_id: Optional[str] = None


class MilestoneRejected(DomainEvent):
    type: Literal["milestone.rejected"] = "milestone.rejected"
    milestone_id: str
    contract_id: str


class BudgetChanged(DomainEvent):
    type: Literal["budget.changed"] = "budget.changed"
    business_id: str


AnyDomainEvent = Annotated[
    Union[
        WorkRequestCreated,
        WorkRequestAccepted,
        WorkRequestDeclined,
        SubmissionCreated,
        ChangesRequested,
        SubmissionRejected,
        WorkRequestApproved,
        MilestoneSubmitted,
        MilestoneApproved,
        MilestoneRejected,
        BudgetChanged,
    ],
    Field(discriminator="type"),
]
