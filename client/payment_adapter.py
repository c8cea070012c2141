"""
Approve-then-pay from the reviewer's side.

    create intent -> collector.confirm -> persist pending record -> finalize -> clear record

The pending record is written before finalize is called, so a process that dies
between the payment and the approval can finish the job later with
``resume_pending``. A confirmed payment is never charged again automatically.
"""
from __future__ import annotations

import asyncio
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Protocol

import httpx
import stripe
from pydantic import BaseModel, Field, TypeAdapter

from client.api import MarketplaceClient, parse_events
from client.errors import ApiError, ClientValidationError, PaymentFailedError, ReconciliationError
from client.events import EventBus
from config import settings
from services.payments import payment_error_message, to_minor_units
from utils.logger import get_logger

log = get_logger("client.payments")


class PaymentRequest(BaseModel):
    payment_intent_id: str
    client_secret: Optional[str] = None
    amount_minor: int
    currency: str
    description: Optional[str] = None
    metadata: dict[str, str] = Field(default_factory=dict)


class PaymentOutcome(BaseModel):
    succeeded: bool
    status: Optional[str] = None
    error_code: Optional[str] = None
    decline_code: Optional[str] = None
    message: Optional[str] = None


class PaymentCollector(Protocol):
    async def confirm(self, request: PaymentRequest) -> PaymentOutcome:
        ...


class StripePaymentCollector:
    """Confirms an intent server-to-server with a saved payment method."""

    def __init__(self, api_key: str, payment_method: str):
        self.api_key = api_key
        self.payment_method = payment_method

    async def confirm(self, request: PaymentRequest) -> PaymentOutcome:
        try:
            intent = await asyncio.to_thread(
                stripe.PaymentIntent.confirm,
                request.payment_intent_id,
                payment_method=self.payment_method,
                api_key=self.api_key,
            )
        except stripe.CardError as e:
            error = getattr(e, "error", None)
            return PaymentOutcome(
                succeeded=False,
                error_code=e.code,
                decline_code=getattr(error, "decline_code", None),
                message=e.user_message,
            )
        except stripe.StripeError as e:
            log.error("[STRIPE] confirm failed for %s: %s", request.payment_intent_id, e)
            return PaymentOutcome(succeeded=False, error_code=getattr(e, "code", None) or "processing_error")
        if intent["status"] == "succeeded":
            return PaymentOutcome(succeeded=True, status="succeeded")
        if intent["status"] == "requires_action":
            return PaymentOutcome(succeeded=False, status=intent["status"], error_code="authentication_required")
        return PaymentOutcome(succeeded=False, status=intent["status"])


class PendingFinalization(BaseModel):
    work_request_id: str
    submission_id: str
    submission_version: int
    payment_intent_id: str
    amount_minor: int
    currency: str
    review_notes: Optional[str] = None
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


_records = TypeAdapter(list[PendingFinalization])


class PendingFinalizationStore:
    """JSON file of payments confirmed but not yet finalized on the server."""

    def __init__(self, path: Optional[str | os.PathLike[str]] = None):
        self.path = Path(path or settings.pending_finalization_path)

    def all(self) -> list[PendingFinalization]:
        if not self.path.exists():
            return []
        return _records.validate_json(self.path.read_bytes())

    def add(self, record: PendingFinalization) -> None:
        records = [r for r in self.all() if r.payment_intent_id != record.payment_intent_id]
        self._write(records + [record])

    def remove(self, payment_intent_id: str) -> None:
        self._write([r for r in self.all() if r.payment_intent_id != payment_intent_id])

    def _write(self, records: list[PendingFinalization]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".pending-", suffix=".json")
        with os.fdopen(fd, "wb") as f:
            f.write(_records.dump_json(records, indent=2))
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, self.path)


class PaymentTriggerAdapter:
    def __init__(
        self,
        api: MarketplaceClient,
        collector: PaymentCollector,
        store: PendingFinalizationStore,
        bus: Optional[EventBus] = None,
    ):
        self.api = api
        self.collector = collector
        self.store = store
        self.bus = bus

    async def approve(
        self, work_request: dict[str, Any], submission: dict[str, Any], review_notes: Optional[str] = None
    ) -> dict[str, Any]:
        """Pay for ``submission`` and finalize its approval; returns the finalize response."""
        wr_id, sub_id, version = work_request["id"], submission["id"], submission["version"]
        intent = await self.api.create_payment_intent(wr_id, sub_id, version)

        expected = to_minor_units(work_request["amount"], work_request["currency"])
        if intent["amount"] != expected or intent["currency"].lower() != work_request["currency"].lower():
            raise ClientValidationError(
                f"Payment amount {intent['amount']} {intent['currency']} does not match "
                f"the work request amount {expected} {work_request['currency']}"
            )

        request = PaymentRequest(
            payment_intent_id=intent["paymentIntentId"],
            client_secret=intent.get("clientSecret"),
            amount_minor=intent["amount"],
            currency=intent["currency"],
            description=intent.get("description"),
            metadata=intent.get("metadata") or {},
        )
        outcome = await self.collector.confirm(request)
        if not outcome.succeeded:
            log.info(
                "[PAYMENT_FAILED] intent=%s workRequestId=%s code=%s",
                request.payment_intent_id, wr_id, outcome.error_code,
            )
            raise PaymentFailedError(
                payment_error_message(outcome.error_code, outcome.decline_code, outcome.message),
                code=outcome.decline_code or outcome.error_code,
            )

        record = PendingFinalization(
            work_request_id=wr_id,
            submission_id=sub_id,
            submission_version=version,
            payment_intent_id=request.payment_intent_id,
            amount_minor=request.amount_minor,
            currency=request.currency,
            review_notes=review_notes,
        )
        self.store.add(record)
        response = await self._finalize(record)
        log.info("[WORK_REQUEST_APPROVED] workRequestId=%s intent=%s", wr_id, record.payment_intent_id)
        return response

    async def _finalize(self, record: PendingFinalization) -> dict[str, Any]:
        try:
            response = await self.api.approve_after_payment(
                record.work_request_id,
                record.submission_id,
                record.payment_intent_id,
                record.submission_version,
                record.review_notes,
            )
        except (ApiError, httpx.HTTPError) as e:
            log.error(
                "[RECONCILIATION] intent=%s succeeded but finalize failed for work request %s: %s",
                record.payment_intent_id, record.work_request_id, e,
            )
            raise ReconciliationError(record.payment_intent_id, e) from e
        self.store.remove(record.payment_intent_id)
        return response

    async def resume_pending(self) -> list[dict[str, Any]]:
        """Retry finalize for every stored record; records that still fail stay on disk."""
        finished: list[dict[str, Any]] = []
        for record in self.store.all():
            try:
                response = await self._finalize(record)
            except ReconciliationError:
                continue
            if self.bus is not None:
                await self.bus.publish_all(parse_events(response))
            finished.append(response)
        return finished
