"""
Client-side budget pre-check; the server repeats the same check authoritatively.

The ``create_*`` helpers are what the work request and milestone forms call:
an amount that would break the cap is rejected before anything is sent.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional, Union

from client.api import MarketplaceClient, parse_events
from client.errors import ClientValidationError
from client.events import EventBus
from schemas.budget import BudgetCheckResult
from services.budget import check_budget
from utils.logger import get_logger

log = get_logger("client.budget")

Amount = Union[int, float, str, Decimal]


class BudgetGuard:
    def __init__(self, api: MarketplaceClient, bus: Optional[EventBus] = None):
        self.api = api
        self.bus = bus or EventBus()

    async def check(self, proposed_value: Amount) -> BudgetCheckResult:
        budget = await self.api.get_budget()
        cap = budget.get("budgetCap")
        if cap is None:
            return check_budget(proposed_value, None)
        allocated = Decimal(cap) - Decimal(budget["remainingBudget"])
        return check_budget(proposed_value, Decimal(cap), allocated)

    async def ensure(self, proposed_value: Amount) -> BudgetCheckResult:
        result = await self.check(proposed_value)
        if not result.ok:
            log.info("[BUDGET] blocked amount=%s shortfall=%s", proposed_value, result.shortfall)
            raise ClientValidationError(result.message or "Budget exceeded")
        return result

    async def create_work_request(self, project_id: str, work_request: dict[str, Any]) -> dict[str, Any]:
        await self.ensure(work_request.get("amount"))
        response = await self.api.create_work_request(project_id, work_request)
        await self.bus.publish_all(parse_events(response))
        return response["workRequest"]

    async def create_milestone(self, contract_id: str, milestone: dict[str, Any]) -> dict[str, Any]:
        await self.ensure(milestone.get("paymentAmount"))
        return await self.api.create_milestone(contract_id, milestone)
