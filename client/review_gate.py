"""
Review surface for a business: shows only the latest submission and guards
review actions before anything is sent.
"""
from __future__ import annotations

from typing import Any, Optional

from client.controller import WorkRequestController
from client.errors import ClientValidationError
from services.workflow import Action, WorkRequestStatus

REVIEW_ACTIONS = frozenset({Action.APPROVE, Action.REJECT, Action.REQUEST_CHANGES})

FEEDBACK_REQUIRED = "Feedback is required when rejecting or requesting changes"


class ReviewGate:
    def __init__(self, controller: WorkRequestController):
        self.controller = controller

    @property
    def submission(self) -> Optional[dict[str, Any]]:
        """The highest-version submission; earlier versions are never reviewable."""
        return self.controller.latest_submission

    def available_actions(self) -> frozenset[Action]:
        submission = self.submission
        if submission is None or submission.get("status") != WorkRequestStatus.SUBMITTED.value:
            return frozenset()
        return self.controller.allowed_actions() & REVIEW_ACTIONS

    async def approve(self, review_notes: Optional[str] = None) -> dict[str, Any]:
        return await self._review(Action.APPROVE, review_notes)

    async def reject(self, feedback: str) -> dict[str, Any]:
        return await self._review(Action.REJECT, _require_feedback(feedback))

    async def request_changes(self, feedback: str) -> dict[str, Any]:
        return await self._review(Action.REQUEST_CHANGES, _require_feedback(feedback))

    async def _review(self, action: Action, review_notes: Optional[str]) -> dict[str, Any]:
        if action not in self.available_actions():
            raise ClientValidationError(f"Cannot {action.value} this submission")
        return await self.controller.perform(action, review_notes=review_notes)


def _require_feedback(feedback: Optional[str]) -> str:
    text = (feedback or "").strip()
    if not text:
        raise ClientValidationError(FEEDBACK_REQUIRED)
    return text
