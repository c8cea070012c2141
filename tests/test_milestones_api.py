"""
Contracts and milestone submit / approve / reject over HTTP.
Run from repo root: python -m pytest tests/test_milestones_api.py -v
"""
import unittest
from decimal import Decimal

from sqlalchemy import func, select

from harness import BUSINESS, CONTRACTOR, UNPAYABLE_CONTRACTOR, ApiTestCase
from models import Payment, User


class MilestoneTestCase(ApiTestCase):
    async def make_milestone(self, amount: str = "300.00", contractor: str = CONTRACTOR) -> dict:
        contract = await self.ok("POST", "/api/contracts", json={"contractorId": contractor, "name": "Retainer", "currency": "gbp"})
        return await self.ok(
            "POST",
            f"/api/contracts/{contract['id']}/milestones",
            json={"name": "Design system", "paymentAmount": amount},
        )

    async def make_submitted_milestone(self, amount: str = "300.00", contractor: str = CONTRACTOR) -> dict:
        milestone = await self.make_milestone(amount, contractor)
        body = await self.ok(
            "POST",
            f"/api/milestones/{milestone['id']}/submit",
            user=contractor,
            json={"deliverableUrl": "https://files.example.com/ds.fig"},
        )
        return body["milestone"]


class TestMilestones(MilestoneTestCase):
    async def test_submit(self):
        milestone = await self.make_submitted_milestone()
        self.assertEqual(milestone["status"], "submitted")
        self.assertEqual(milestone["deliverableUrl"], "https://files.example.com/ds.fig")
        self.assertIsNotNone(milestone["submittedAt"])

    async def test_approve_creates_one_payment(self):
        milestone = await self.make_submitted_milestone()
        first = await self.ok("POST", f"/api/milestones/{milestone['id']}/approve", json={"approvalNotes": "Great"})
        self.assertFalse(first["alreadyApproved"])
        self.assertEqual(first["milestone"]["status"], "approved")
        self.assertEqual(first["payment"]["amount"], "300.00")
        self.assertEqual(first["events"][0]["type"], "milestone.approved")
        self.assertEqual(self.gateway.create_calls[0]["idempotency_key"], f"milestone-{milestone['id']}")
        self.assertEqual(self.gateway.create_calls[0]["amount"], 30000)

        second = await self.ok("POST", f"/api/milestones/{milestone['id']}/approve", json={})
        self.assertTrue(second["alreadyApproved"])
        self.assertEqual(second["payment"]["id"], first["payment"]["id"])
        self.assertIsNotNone(second["milestone"]["approvedAt"])
        self.assertEqual(second["events"], [])
        self.assertEqual(len(self.gateway.create_calls), 1)

        async with self.sessions() as session:
            count = await session.scalar(select(func.count()).select_from(Payment))
            business = await session.get(User, BUSINESS)
        self.assertEqual(count, 1)
        self.assertEqual(business.budget_used, Decimal("300.00"))

    async def test_contractor_cannot_approve(self):
        milestone = await self.make_submitted_milestone()
        response = await self.call("POST", f"/api/milestones/{milestone['id']}/approve", user=CONTRACTOR, json={})
        self.assertEqual(response.status_code, 403)

    async def test_pending_milestone_cannot_be_approved(self):
        milestone = await self.make_milestone()
        response = await self.call("POST", f"/api/milestones/{milestone['id']}/approve", json={})
        self.assertEqual(response.status_code, 409)

    async def test_contractor_without_payout_account(self):
        milestone = await self.make_submitted_milestone(contractor=UNPAYABLE_CONTRACTOR)
        response = await self.call("POST", f"/api/milestones/{milestone['id']}/approve", json={})
        self.assertEqual(response.status_code, 422)
        current = await self.ok("GET", f"/api/milestones/{milestone['id']}")
        self.assertEqual(current["status"], "submitted")
        self.assertIsNone(current["approvedAt"])

    async def test_reject_requires_notes(self):
        milestone = await self.make_submitted_milestone()
        response = await self.call("POST", f"/api/milestones/{milestone['id']}/reject", json={"notes": "  "})
        self.assertEqual(response.status_code, 422)

    async def test_reject_then_resubmit(self):
        milestone = await self.make_submitted_milestone()
        body = await self.ok("POST", f"/api/milestones/{milestone['id']}/reject", json={"notes": "Missing dark mode"})
        self.assertEqual(body["milestone"]["status"], "rejected")
        self.assertEqual(body["milestone"]["rejectionNotes"], "Missing dark mode")
        again = await self.ok("POST", f"/api/milestones/{milestone['id']}/submit", user=CONTRACTOR, json={})
        self.assertEqual(again["milestone"]["status"], "submitted")


class TestMilestoneBudget(MilestoneTestCase):
    budget_cap = Decimal("500.00")

    async def test_milestone_over_budget_is_rejected(self):
        response = await self.call(
            "POST",
            "/api/contracts",
            json={"contractorId": CONTRACTOR, "name": "Big job"},
        )
        contract = response.json()
        response = await self.call(
            "POST",
            f"/api/contracts/{contract['id']}/milestones",
            json={"name": "Everything", "paymentAmount": "500.00"},
        )
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["shortfall"], "0.01")


if __name__ == "__main__":
    unittest.main()
