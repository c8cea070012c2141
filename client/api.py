"""
Thin async HTTP client for the work API.

Responses come back camelCase; ``_request`` turns non-2xx responses into the
typed errors from ``client.errors`` and ``parse_events`` turns the ``events``
list of a mutation response into typed domain events.
"""
from __future__ import annotations

from typing import Any, Optional

import httpx
from pydantic import TypeAdapter

from client.errors import ApiError, error_for_status
from schemas.events import AnyDomainEvent, DomainEvent
from utils.case import dict_keys_to_snake
from utils.logger import get_logger

log = get_logger("client")

_event_adapter: TypeAdapter[Any] = TypeAdapter(AnyDomainEvent)


def parse_events(payload: dict[str, Any]) -> list[DomainEvent]:
    return [_event_adapter.validate_python(dict_keys_to_snake(e)) for e in payload.get("events") or []]


def _error_message(body: Any, fallback: str) -> str:
    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, str):
        return detail
    if isinstance(detail, list):
        # FastAPI request validation errors
        return "; ".join(str(d.get("msg", d)) if isinstance(d, dict) else str(d) for d in detail)
    return fallback


class MarketplaceClient:
    def __init__(self, http: httpx.AsyncClient, user_id: Optional[str] = None):
        self.http = http
        self.user_id = user_id

    async def _request(self, method: str, path: str, json: Optional[dict[str, Any]] = None) -> Any:
        headers = {"X-User-ID": self.user_id} if self.user_id else {}
        response = await self.http.request(method, path, json=json, headers=headers)
        if response.is_success:
            return response.json()
        try:
            body = response.json()
        except ValueError:
            body = None
        message = _error_message(body, response.reason_phrase or f"HTTP {response.status_code}")
        log.warning("%s %s -> %s: %s", method, path, response.status_code, message)
        raise error_for_status(response.status_code, message, body if isinstance(body, dict) else None)

    # Projects and work requests

    async def create_project(self, project: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", "/api/projects", json=project)

    async def create_work_request(self, project_id: str, work_request: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", f"/api/projects/{project_id}/work-requests", json=work_request)

    async def get_work_request(self, work_request_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/api/work-requests/{work_request_id}")

    async def get_latest_submission(self, work_request_id: str) -> Optional[dict[str, Any]]:
        try:
            body = await self._request("GET", f"/api/work-requests/{work_request_id}/submissions/latest")
        except ApiError as e:
            if e.status_code == 404 and e.message == "No submissions yet":
                return None
            raise
        return body["submission"]

    async def accept(self, work_request_id: str) -> dict[str, Any]:
        return await self._request("POST", f"/api/work-requests/{work_request_id}/accept")

    async def decline(self, work_request_id: str) -> dict[str, Any]:
        return await self._request("POST", f"/api/work-requests/{work_request_id}/decline")

    async def submit(self, work_request_id: str, submission: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", f"/api/work-requests/{work_request_id}/submissions", json=submission)

    async def review(
        self,
        work_request_id: str,
        submission_id: str,
        action: str,
        submission_version: int,
        review_notes: Optional[str] = None,
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/api/work-requests/{work_request_id}/submissions/{submission_id}/review",
            json={"action": action, "reviewNotes": review_notes, "submissionVersion": submission_version},
        )

    async def create_payment_intent(self, work_request_id: str, submission_id: str, submission_version: int) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/api/work-requests/{work_request_id}/submissions/{submission_id}/payment-intent",
            json={"submissionVersion": submission_version},
        )

    async def approve_after_payment(
        self,
        work_request_id: str,
        submission_id: str,
        payment_intent_id: str,
        submission_version: int,
        review_notes: Optional[str] = None,
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/api/work-requests/{work_request_id}/submissions/{submission_id}/approve-after-payment",
            json={
                "paymentIntentId": payment_intent_id,
                "reviewNotes": review_notes,
                "submissionVersion": submission_version,
            },
        )

    # Contracts and milestones

    async def create_contract(self, contract: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", "/api/contracts", json=contract)

    async def create_milestone(self, contract_id: str, milestone: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", f"/api/contracts/{contract_id}/milestones", json=milestone)

    async def get_milestone(self, milestone_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/api/milestones/{milestone_id}")

    async def approve_milestone(self, milestone_id: str, approval_notes: Optional[str] = None) -> dict[str, Any]:
        return await self._request("POST", f"/api/milestones/{milestone_id}/approve", json={"approvalNotes": approval_notes})

    async def reject_milestone(self, milestone_id: str, notes: str) -> dict[str, Any]:
        return await self._request("POST", f"/api/milestones/{milestone_id}/reject", json={"notes": notes})

    # Budget

    async def get_budget(self) -> dict[str, Any]:
        return await self._request("GET", "/api/budget")
