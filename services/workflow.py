"""
Status machines for work requests and milestones.

Everything here is pure: given a status, an action and the acting role, decide
what is allowed and what the next status is. Services and the client package
both use these tables, so the actions a UI offers and the transitions the
server accepts can never drift apart.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

from services.errors import PermissionDeniedError, StateConflictError


class Role(str, Enum):
    BUSINESS = "business"
    CONTRACTOR = "contractor"


class WorkRequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    SUBMITTED = "submitted"
    NEEDS_REVISION = "needs_revision"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"


class Action(str, Enum):
    ACCEPT = "accept"
    DECLINE = "decline"
    SUBMIT = "submit"
    RESUBMIT = "resubmit"
    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_CHANGES = "request-changes"


class MilestoneStatus(str, Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


# (status, action) -> (role allowed to act, resulting status)
WORK_REQUEST_TRANSITIONS: dict[tuple[WorkRequestStatus, Action], tuple[Role, WorkRequestStatus]] = {
    (WorkRequestStatus.PENDING, Action.ACCEPT): (Role.CONTRACTOR, WorkRequestStatus.ACCEPTED),
    (WorkRequestStatus.PENDING, Action.DECLINE): (Role.CONTRACTOR, WorkRequestStatus.DECLINED),
    (WorkRequestStatus.ACCEPTED, Action.SUBMIT): (Role.CONTRACTOR, WorkRequestStatus.SUBMITTED),
    (WorkRequestStatus.SUBMITTED, Action.APPROVE): (Role.BUSINESS, WorkRequestStatus.APPROVED),
    (WorkRequestStatus.SUBMITTED, Action.REJECT): (Role.BUSINESS, WorkRequestStatus.REJECTED),
    (WorkRequestStatus.SUBMITTED, Action.REQUEST_CHANGES): (Role.BUSINESS, WorkRequestStatus.NEEDS_REVISION),
    (WorkRequestStatus.NEEDS_REVISION, Action.RESUBMIT): (Role.CONTRACTOR, WorkRequestStatus.SUBMITTED),
}

MILESTONE_TRANSITIONS: dict[tuple[MilestoneStatus, Action], tuple[Role, MilestoneStatus]] = {
    (MilestoneStatus.PENDING, Action.SUBMIT): (Role.CONTRACTOR, MilestoneStatus.SUBMITTED),
    (MilestoneStatus.REJECTED, Action.RESUBMIT): (Role.CONTRACTOR, MilestoneStatus.SUBMITTED),
    (MilestoneStatus.SUBMITTED, Action.APPROVE): (Role.BUSINESS, MilestoneStatus.APPROVED),
    (MilestoneStatus.SUBMITTED, Action.REJECT): (Role.BUSINESS, MilestoneStatus.REJECTED),
}


def allowed_actions(status: str | WorkRequestStatus, role: Optional[str | Role] = None) -> frozenset[Action]:
    """Actions offered for a work request in ``status``, optionally limited to one role."""
    status = WorkRequestStatus(status)
    role = Role(role) if role is not None else None
    return frozenset(
        action
        for (from_status, action), (actor, _) in WORK_REQUEST_TRANSITIONS.items()
        if from_status == status and (role is None or actor == role)
    )


def next_status(status: str | WorkRequestStatus, action: str | Action, role: str | Role) -> WorkRequestStatus:
    """Resolve a work request transition or raise the matching domain error."""
    return _resolve(WORK_REQUEST_TRANSITIONS, WorkRequestStatus(status), Action(action), Role(role), "work request")


def next_milestone_status(status: str | MilestoneStatus, action: str | Action, role: str | Role) -> MilestoneStatus:
    return _resolve(MILESTONE_TRANSITIONS, MilestoneStatus(status), Action(action), Role(role), "milestone")


def _resolve(table, status, action, role, label):
    entry = table.get((status, action))
    if entry is None:
        raise StateConflictError(
            f"Cannot {action.value} {label} with status: {status.value}",
            extra={"status": status.value},
        )
    actor, target = entry
    if actor != role:
        raise PermissionDeniedError(f"Only the {actor.value} can {action.value} this {label}")
    return target
