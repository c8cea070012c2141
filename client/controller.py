"""
Client-side lifecycle controller for one work request.

``perform`` applies the transition optimistically, restores the previous state
if anything fails, and on success publishes the server's domain events and
reloads from the server. Approval is never shown optimistically: the status
stays put while the payment and finalization run, and ``pending_action``
names the step in flight.
"""
from __future__ import annotations

from typing import Any, Optional

from client.api import MarketplaceClient, parse_events
from client.errors import ActionInProgressError, ClientValidationError
from client.events import EventBus
from client.payment_adapter import PaymentTriggerAdapter
from services.workflow import Action, Role, WorkRequestStatus, allowed_actions, next_status
from utils.logger import get_logger

log = get_logger("client.controller")


class WorkRequestController:
    def __init__(
        self,
        api: MarketplaceClient,
        work_request_id: str,
        role: Role | str,
        bus: Optional[EventBus] = None,
        payments: Optional[PaymentTriggerAdapter] = None,
    ):
        self.api = api
        self.work_request_id = work_request_id
        self.role = Role(role)
        self.bus = bus or EventBus()
        self.payments = payments
        self.work_request: Optional[dict[str, Any]] = None
        self.latest_submission: Optional[dict[str, Any]] = None
        self.busy = False
        self.pending_action: Optional[Action] = None

    async def load(self) -> dict[str, Any]:
        self.work_request = await self.api.get_work_request(self.work_request_id)
        self.latest_submission = await self.api.get_latest_submission(self.work_request_id)
        return self.work_request

    @property
    def status(self) -> WorkRequestStatus:
        if self.work_request is None:
            raise ClientValidationError("Work request has not been loaded")
        return WorkRequestStatus(self.work_request["status"])

    def allowed_actions(self) -> frozenset[Action]:
        if self.work_request is None:
            return frozenset()
        return allowed_actions(self.status, self.role)

    async def perform(self, action: Action | str, **params: Any) -> dict[str, Any]:
        action = Action(action)
        if self.busy:
            raise ActionInProgressError("Another action on this work request is still in progress")
        if action not in self.allowed_actions():
            raise ClientValidationError(f"Cannot {action.value} a work request with status: {self.status.value}")

        snapshot = (self.work_request, self.latest_submission)
        self.busy = True
        self.pending_action = action
        try:
            # approved is only shown once the reload confirms it
            if action != Action.APPROVE:
                self.work_request = {**self.work_request, "status": next_status(self.status, action, self.role).value}
            response = await self._dispatch(action, snapshot[0], snapshot[1], params)
        except Exception:
            self.work_request, self.latest_submission = snapshot
            raise
        finally:
            self.busy = False
            self.pending_action = None

        await self.bus.publish_all(parse_events(response))
        await self.load()
        log.info("[%s] workRequestId=%s status=%s", action.value.upper(), self.work_request_id, self.status.value)
        return response

    async def _dispatch(
        self,
        action: Action,
        work_request: dict[str, Any],
        submission: Optional[dict[str, Any]],
        params: dict[str, Any],
    ) -> dict[str, Any]:
        wr_id = self.work_request_id
        if action == Action.ACCEPT:
            return await self.api.accept(wr_id)
        if action == Action.DECLINE:
            return await self.api.decline(wr_id)
        if action in (Action.SUBMIT, Action.RESUBMIT):
            return await self.api.submit(wr_id, params["submission"])
        if submission is None:
            raise ClientValidationError("There is no submission to review")
        if action == Action.APPROVE:
            if self.payments is None:
                raise ClientValidationError("Approving work requires a payment method")
            return await self.payments.approve(work_request, submission, params.get("review_notes"))
        return await self.api.review(
            wr_id, submission["id"], action.value, submission["version"], params.get("review_notes")
        )
