"""
Shared fixtures for API and client tests: the FastAPI app over
httpx.ASGITransport, a fresh in-memory SQLite database per test, and a fake
payment gateway in place of Stripe.
"""
import unittest
from decimal import Decimal
from typing import Optional

import httpx

from database import get_db, init_db, make_engine, make_sessionmaker
from main import app
from models import User
from schemas.payment import PaymentIntentInfo
from services.errors import PaymentProviderError
from services.payments import PaymentGateway, get_payment_gateway

BUSINESS = "biz-1"
OTHER_BUSINESS = "biz-2"
CONTRACTOR = "con-1"
UNPAYABLE_CONTRACTOR = "con-2"


class FakeGateway(PaymentGateway):
    """In-memory PaymentIntents; idempotency keys map to the same intent like Stripe's."""

    def __init__(self):
        self.intents: dict[str, PaymentIntentInfo] = {}
        self.by_key: dict[str, str] = {}
        self.create_calls: list[dict] = []

    async def create_intent(self, amount_minor, currency, description, metadata, idempotency_key, destination=None):
        self.create_calls.append({
            "amount": amount_minor,
            "currency": currency,
            "metadata": metadata,
            "idempotency_key": idempotency_key,
            "destination": destination,
        })
        if idempotency_key in self.by_key:
            return self.intents[self.by_key[idempotency_key]]
        intent_id = f"pi_test_{len(self.intents) + 1}"
        intent = PaymentIntentInfo(
            id=intent_id,
            client_secret=f"{intent_id}_secret",
            status="requires_payment_method",
            amount=amount_minor,
            currency=currency.lower(),
            description=description,
            metadata=metadata,
        )
        self.intents[intent_id] = intent
        self.by_key[idempotency_key] = intent_id
        return intent

    async def retrieve_intent(self, payment_intent_id):
        if payment_intent_id not in self.intents:
            raise PaymentProviderError(f"Unknown payment {payment_intent_id}")
        return self.intents[payment_intent_id]

    def set_status(self, payment_intent_id: str, status: str, transfer_succeeded: bool = False) -> None:
        self.intents[payment_intent_id] = self.intents[payment_intent_id].model_copy(
            update={"status": status, "transfer_succeeded": transfer_succeeded}
        )


class ApiTestCase(unittest.IsolatedAsyncioTestCase):
    budget_cap: Optional[Decimal] = None

    async def asyncSetUp(self):
        self.engine = make_engine("sqlite+aiosqlite://")
        await init_db(bind=self.engine)
        self.sessions = make_sessionmaker(self.engine)

        async def override_get_db():
            async with self.sessions() as session:
                try:
                    yield session
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise

        self.gateway = FakeGateway()
        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_payment_gateway] = lambda: self.gateway
        self.http = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")

        async with self.sessions() as session:
            session.add_all([
                User(id=BUSINESS, username="acme", role="business", budget_cap=self.budget_cap, budget_used=0),
                User(id=OTHER_BUSINESS, username="globex", role="business", budget_used=0),
                User(id=CONTRACTOR, username="jo", role="contractor", stripe_connect_account_id="acct_test_1"),
                User(id=UNPAYABLE_CONTRACTOR, username="sam", role="contractor"),
            ])
            await session.commit()

    async def asyncTearDown(self):
        await self.http.aclose()
        app.dependency_overrides.clear()
        await self.engine.dispose()

    async def call(self, method: str, path: str, user: Optional[str] = BUSINESS, json: Optional[dict] = None) -> httpx.Response:
        headers = {"X-User-ID": user} if user else {}
        return await self.http.request(method, path, json=json, headers=headers)

    async def ok(self, method: str, path: str, user: Optional[str] = BUSINESS, json: Optional[dict] = None) -> dict:
        response = await self.call(method, path, user, json)
        self.assertLess(response.status_code, 300, response.text)
        return response.json()

    async def make_work_request(self, amount: str = "150.00", contractor: str = CONTRACTOR) -> dict:
        project = await self.ok("POST", "/api/projects", json={"name": "Website refresh"})
        body = await self.ok(
            "POST",
            f"/api/projects/{project['id']}/work-requests",
            json={"contractorUserId": contractor, "title": "Landing page", "amount": amount, "currency": "GBP"},
        )
        return body["workRequest"]

    async def make_submitted(self, amount: str = "150.00") -> tuple[dict, dict]:
        wr = await self.make_work_request(amount)
        await self.ok("POST", f"/api/work-requests/{wr['id']}/accept", user=CONTRACTOR)
        body = await self.ok(
            "POST",
            f"/api/work-requests/{wr['id']}/submissions",
            user=CONTRACTOR,
            json={"artifactUrl": "https://files.example.com/v1.zip", "notes": "first cut"},
        )
        return wr, body["submission"]

    async def pay_and_approve(self, wr: dict, submission: dict, notes: Optional[str] = "Looks good") -> dict:
        base = f"/api/work-requests/{wr['id']}/submissions/{submission['id']}"
        intent = await self.ok("POST", f"{base}/payment-intent", json={"submissionVersion": submission["version"]})
        self.gateway.set_status(intent["paymentIntentId"], "succeeded")
        return await self.ok(
            "POST",
            f"{base}/approve-after-payment",
            json={
                "paymentIntentId": intent["paymentIntentId"],
                "reviewNotes": notes,
                "submissionVersion": submission["version"],
            },
        )
