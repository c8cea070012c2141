"""
Budget settings and the server-side budget guard.
Run from repo root: python -m pytest tests/test_budget_api.py -v
"""
import unittest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from harness import BUSINESS, CONTRACTOR, ApiTestCase
from models import User


class TestBudgetApi(ApiTestCase):
    budget_cap = Decimal("200.00")

    async def test_get_budget(self):
        await self.make_work_request(amount="50.00")
        budget = await self.ok("GET", "/api/budget")
        self.assertEqual(budget["budgetCap"], "200.00")
        self.assertEqual(budget["remainingBudget"], "150.00")

    async def test_work_request_over_budget_is_422(self):
        await self.make_work_request(amount="150.00")
        project = await self.ok("POST", "/api/projects", json={"name": "Second"})
        response = await self.call(
            "POST",
            f"/api/projects/{project['id']}/work-requests",
            json={"contractorUserId": CONTRACTOR, "title": "More", "amount": "60.00"},
        )
        self.assertEqual(response.status_code, 422)
        self.assertIn("exceeds your remaining budget", response.json()["detail"])

    async def test_check_endpoint(self):
        await self.make_work_request(amount="40.00")
        ok = await self.ok("POST", "/api/budget/check", json={"proposedValue": "50"})
        self.assertTrue(ok["ok"])
        too_much = await self.ok("POST", "/api/budget/check", json={"proposedValue": "160"})
        self.assertFalse(too_much["ok"])

    async def test_cap_cannot_drop_below_commitments(self):
        await self.make_work_request(amount="150.00")
        response = await self.call("PUT", "/api/budget", json={"budgetCap": "100.00"})
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["minimumRequired"], "150.01")
        body = await self.ok("PUT", "/api/budget", json={"budgetCap": "400.00", "budgetPeriod": "monthly"})
        self.assertEqual(body["budgetCap"], "400.00")
        self.assertEqual(body["budgetPeriod"], "monthly")
        self.assertEqual(body["events"][0]["type"], "budget.changed")

    async def test_manual_reset_without_opt_in(self):
        wr, sub = await self.make_submitted(amount="100.00")
        await self.pay_and_approve(wr, sub)
        self.assertEqual((await self.ok("GET", "/api/budget"))["budgetUsed"], "100.00")
        body = await self.ok("POST", "/api/budget/reset")
        self.assertEqual(body["budgetUsed"], "0.00")
        self.assertFalse(body["budgetResetEnabled"])

    async def test_settings_start_a_period(self):
        body = await self.ok("PUT", "/api/budget", json={"budgetPeriod": "quarterly"})
        start = datetime.fromisoformat(body["budgetStartDate"])
        end = datetime.fromisoformat(body["budgetEndDate"])
        self.assertEqual((end.year * 12 + end.month) - (start.year * 12 + start.month), 3)

    async def test_expired_period_rolls_over_when_enabled(self):
        await self.ok("PUT", "/api/budget", json={"budgetPeriod": "monthly", "budgetResetEnabled": True})
        await self.expire_period(used="180.00")

        budget = await self.ok("GET", "/api/budget")
        self.assertEqual(budget["budgetUsed"], "0.00")
        self.assertEqual(budget["remainingBudget"], "200.00")
        self.assertGreater(datetime.fromisoformat(budget["budgetEndDate"]), datetime.now(timezone.utc))
        async with self.sessions() as session:
            business = await session.get(User, BUSINESS)
        self.assertEqual(business.budget_used, Decimal("0.00"))

    async def test_expired_period_rolls_over_before_payment(self):
        await self.ok("PUT", "/api/budget", json={"budgetResetEnabled": True})
        wr, sub = await self.make_submitted(amount="150.00")
        await self.expire_period(used="100.00")
        body = await self.pay_and_approve(wr, sub)
        self.assertEqual(body["workRequest"]["status"], "approved")
        async with self.sessions() as session:
            business = await session.get(User, BUSINESS)
        self.assertEqual(business.budget_used, Decimal("150.00"))

    async def test_expired_period_kept_when_disabled(self):
        await self.ok("PUT", "/api/budget", json={"budgetPeriod": "monthly"})
        await self.expire_period(used="180.00")
        budget = await self.ok("GET", "/api/budget")
        self.assertEqual(budget["budgetUsed"], "180.00")
        self.assertEqual(budget["remainingBudget"], "20.00")

    async def expire_period(self, used: str) -> None:
        async with self.sessions() as session:
            business = await session.get(User, BUSINESS)
            business.budget_used = Decimal(used)
            business.budget_start_date = datetime.now(timezone.utc) - timedelta(days=40)
            business.budget_end_date = datetime.now(timezone.utc) - timedelta(days=10)
            await session.commit()

    async def test_contractor_has_no_budget(self):
        response = await self.call("GET", "/api/budget", user=CONTRACTOR)
        self.assertEqual(response.status_code, 403)


if __name__ == "__main__":
    unittest.main()
