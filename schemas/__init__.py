from schemas.budget import BudgetCheckRequest, BudgetCheckResult, BudgetUpdate
from schemas.events import AnyDomainEvent, DomainEvent
from schemas.milestone import ContractCreate, MilestoneApprove, MilestoneCreate, MilestoneReject, MilestoneSubmit
from schemas.payment import ApproveAfterPayment, PaymentIntentCreate, PaymentIntentInfo
from schemas.work_request import ProjectCreate, ReviewRequest, SubmissionCreate, WorkRequestCreate

__all__ = [
    "AnyDomainEvent",
    "ApproveAfterPayment",
    "BudgetCheckRequest",
    "BudgetCheckResult",
    "BudgetUpdate",
    "ContractCreate",
    "DomainEvent",
    "MilestoneApprove",
    "MilestoneCreate",
    "MilestoneReject",
    "MilestoneSubmit",
    "PaymentIntentCreate",
    "PaymentIntentInfo",
    "ProjectCreate",
    "ReviewRequest",
    "SubmissionCreate",
    "WorkRequestCreate",
]
