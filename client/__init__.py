from client.api import MarketplaceClient
from client.budget_guard import BudgetGuard
from client.cache import QueryCache
from client.controller import WorkRequestController
from client.events import EventBus
from client.milestones import MilestoneReviewer
from client.payment_adapter import (
    PaymentCollector,
    PaymentOutcome,
    PaymentRequest,
    PaymentTriggerAdapter,
    PendingFinalizationStore,
    StripePaymentCollector,
)
from client.review_gate import ReviewGate

__all__ = [
    "BudgetGuard",
    "EventBus",
    "MarketplaceClient",
    "MilestoneReviewer",
    "PaymentCollector",
    "PaymentOutcome",
    "PaymentRequest",
    "PaymentTriggerAdapter",
    "PendingFinalizationStore",
    "QueryCache",
    "ReviewGate",
    "StripePaymentCollector",
    "WorkRequestController",
]
