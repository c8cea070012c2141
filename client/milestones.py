"""Business-side milestone review: approve pays once, reject needs notes."""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional

from client.api import MarketplaceClient, parse_events
from client.errors import ActionInProgressError, ClientValidationError
from client.events import EventBus
from client.review_gate import FEEDBACK_REQUIRED
from services.workflow import MilestoneStatus
from utils.logger import get_logger

log = get_logger("client.milestones")


class MilestoneReviewer:
    def __init__(self, api: MarketplaceClient, bus: Optional[EventBus] = None):
        self.api = api
        self.bus = bus or EventBus()
        self._in_flight: set[str] = set()

    async def approve(self, milestone_id: str, approval_notes: Optional[str] = None) -> dict[str, Any]:
        """
        Approve a submitted milestone. Approving one that is already approved
        returns the existing payment with ``alreadyApproved`` set instead of
        charging again.
        """
        response = await self._send(milestone_id, lambda: self.api.approve_milestone(milestone_id, approval_notes))
        if response["alreadyApproved"]:
            log.info("[MILESTONE] already approved milestoneId=%s", milestone_id)
        return response

    async def reject(self, milestone_id: str, notes: Optional[str]) -> dict[str, Any]:
        text = (notes or "").strip()
        if not text:
            raise ClientValidationError(FEEDBACK_REQUIRED)
        return await self._send(milestone_id, lambda: self.api.reject_milestone(milestone_id, text))

    async def _send(self, milestone_id: str, request: Callable[[], Awaitable[dict[str, Any]]]) -> dict[str, Any]:
        if milestone_id in self._in_flight:
            raise ActionInProgressError("Another action on this milestone is still in progress")
        self._in_flight.add(milestone_id)
        try:
            response = await request()
        finally:
            self._in_flight.discard(milestone_id)
        await self.bus.publish_all(parse_events(response))
        log.info(
            "[MILESTONE] milestoneId=%s status=%s",
            milestone_id,
            MilestoneStatus(response["milestone"]["status"]).value,
        )
        return response
