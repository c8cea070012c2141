from models.contract import Contract, Milestone
from models.notification import Notification
from models.payment import Payment, PaymentAttempt
from models.project import Project
from models.user import User
from models.work_request import WorkRequest, WorkRequestSubmission

__all__ = [
    "Contract",
    "Milestone",
    "Notification",
    "Payment",
    "PaymentAttempt",
    "Project",
    "User",
    "WorkRequest",
    "WorkRequestSubmission",
]
