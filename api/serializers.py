"""Model -> camelCase dict serializers shared by the routers."""
from typing import Any, Iterable, Optional

from models import Contract, Milestone, Notification, Payment, PaymentAttempt, Project, User, WorkRequest, WorkRequestSubmission
from schemas.events import DomainEvent
from services.workflow import allowed_actions
from utils.case import dict_keys_to_camel, iso, money


def project_to_response(p: Project) -> dict[str, Any]:
    return {
        "id": p.id,
        "businessId": p.business_id,
        "name": p.name,
        "description": p.description,
        "budget": money(p.budget),
        "status": p.status,
        "createdAt": iso(p.created_at),
    }


def work_request_to_response(wr: WorkRequest, role: Optional[str] = None) -> dict[str, Any]:
    return {
        "id": wr.id,
        "projectId": wr.project_id,
        "businessId": wr.business_id,
        "contractorUserId": wr.contractor_user_id,
        "contractId": wr.contract_id,
        "title": wr.title,
        "description": wr.description,
        "deliverableDescription": wr.deliverable_description,
        "amount": money(wr.amount),
        "currency": wr.currency,
        "dueDate": iso(wr.due_date),
        "status": wr.status,
        "allowedActions": sorted(a.value for a in allowed_actions(wr.status, role)),
        "createdAt": iso(wr.created_at),
        "acceptedAt": iso(wr.accepted_at),
        "declinedAt": iso(wr.declined_at),
        "approvedAt": iso(wr.approved_at),
        "paidAt": iso(wr.paid_at),
    }


def submission_to_response(s: WorkRequestSubmission) -> dict[str, Any]:
    return {
        "id": s.id,
        "workRequestId": s.work_request_id,
        "submittedBy": s.submitted_by,
        "version": s.version,
        "submissionType": s.submission_type,
        "artifactUrl": s.artifact_url,
        "deliverableFiles": s.deliverable_files or [],
        "deliverableDescription": s.deliverable_description,
        "notes": s.notes,
        "status": s.status,
        "reviewNotes": s.review_notes,
        "submittedAt": iso(s.submitted_at),
        "reviewedAt": iso(s.reviewed_at),
    }


def contract_to_response(c: Contract) -> dict[str, Any]:
    return {
        "id": c.id,
        "businessId": c.business_id,
        "contractorId": c.contractor_id,
        "projectId": c.project_id,
        "name": c.name,
        "value": money(c.value),
        "currency": c.currency,
        "status": c.status,
    }


def milestone_to_response(m: Milestone) -> dict[str, Any]:
    return {
        "id": m.id,
        "contractId": m.contract_id,
        "name": m.name,
        "description": m.description,
        "paymentAmount": money(m.payment_amount),
        "status": m.status,
        "dueDate": iso(m.due_date),
        "autoPayEnabled": m.auto_pay_enabled,
        "deliverableUrl": m.deliverable_url,
        "submittedAt": iso(m.submitted_at),
        "approvedAt": iso(m.approved_at),
        "approvalNotes": m.approval_notes,
        "rejectedAt": iso(m.rejected_at),
        "rejectionNotes": m.rejection_notes,
    }


def payment_to_response(p: Optional[Payment]) -> Optional[dict[str, Any]]:
    if p is None:
        return None
    return {
        "id": p.id,
        "amount": money(p.amount),
        "currency": p.currency,
        "status": p.status,
        "transferId": p.transfer_id,
        "relatedMilestoneId": p.related_milestone_id,
        "relatedSubmissionId": p.related_submission_id,
        "createdAt": iso(p.created_at),
    }


def attempt_to_response(a: PaymentAttempt) -> dict[str, Any]:
    return {
        "id": a.id,
        "workRequestId": a.work_request_id,
        "submissionId": a.submission_id,
        "submissionVersion": a.submission_version,
        "paymentIntentId": a.payment_intent_id,
        "amountMinor": a.amount_minor,
        "currency": a.currency,
        "status": a.status,
        "createdAt": iso(a.created_at),
        "finalizedAt": iso(a.finalized_at),
    }


def budget_to_response(u: User, remaining: Any = None) -> dict[str, Any]:
    return {
        "budgetCap": money(u.budget_cap),
        "budgetUsed": money(u.budget_used or 0),
        "budgetPeriod": u.budget_period,
        "budgetStartDate": iso(u.budget_start_date),
        "budgetEndDate": iso(u.budget_end_date),
        "budgetResetEnabled": u.budget_reset_enabled,
        "remainingBudget": money(remaining),
    }


def notification_to_response(n: Notification) -> dict[str, Any]:
    return {
        "id": n.id,
        "type": n.type,
        "title": n.title,
        "message": n.message,
        "relatedId": n.related_id,
        "relatedType": n.related_type,
        "read": n.read,
        "createdAt": iso(n.created_at),
    }


def events_to_response(events: Iterable[DomainEvent]) -> list[dict[str, Any]]:
    return [dict_keys_to_camel(e.model_dump()) for e in events]
