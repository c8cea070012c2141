"""
Work request lifecycle, submission review and approve-after-payment over HTTP.
Run from repo root: python -m pytest tests/test_work_request_api.py -v
"""
import unittest

from sqlalchemy import func, select

from harness import BUSINESS, CONTRACTOR, OTHER_BUSINESS, ApiTestCase
from models import Contract, Payment, PaymentAttempt


class TestLifecycle(ApiTestCase):
    async def test_missing_identity_is_401(self):
        response = await self.call("GET", "/api/work-requests/wr-x", user=None)
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["detail"], "Authentication required")
        response = await self.call("GET", "/api/work-requests/wr-x", user="nobody")
        self.assertEqual(response.status_code, 401)

    async def test_create_offers_contractor_actions(self):
        wr = await self.make_work_request()
        self.assertEqual(wr["status"], "pending")
        self.assertEqual(wr["amount"], "150.00")
        self.assertEqual(wr["currency"], "gbp")
        as_contractor = await self.ok("GET", f"/api/work-requests/{wr['id']}", user=CONTRACTOR)
        self.assertEqual(as_contractor["allowedActions"], ["accept", "decline"])
        as_business = await self.ok("GET", f"/api/work-requests/{wr['id']}")
        self.assertEqual(as_business["allowedActions"], [])

    async def test_accept_creates_contract(self):
        wr = await self.make_work_request()
        body = await self.ok("POST", f"/api/work-requests/{wr['id']}/accept", user=CONTRACTOR)
        self.assertEqual(body["workRequest"]["status"], "accepted")
        self.assertEqual(body["events"][0]["type"], "work_request.accepted")
        async with self.sessions() as session:
            contract = await session.get(Contract, body["contractId"])
        self.assertEqual(contract.business_id, BUSINESS)
        self.assertEqual(contract.contractor_id, CONTRACTOR)

    async def test_business_cannot_accept(self):
        wr = await self.make_work_request()
        response = await self.call("POST", f"/api/work-requests/{wr['id']}/accept")
        self.assertEqual(response.status_code, 403)

    async def test_accept_twice_is_conflict(self):
        wr = await self.make_work_request()
        await self.ok("POST", f"/api/work-requests/{wr['id']}/accept", user=CONTRACTOR)
        response = await self.call("POST", f"/api/work-requests/{wr['id']}/accept", user=CONTRACTOR)
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["detail"], "Cannot accept work request with status: accepted")

    async def test_decline_is_terminal(self):
        wr = await self.make_work_request()
        body = await self.ok("POST", f"/api/work-requests/{wr['id']}/decline", user=CONTRACTOR)
        self.assertEqual(body["workRequest"]["status"], "declined")
        self.assertEqual(body["workRequest"]["allowedActions"], [])

    async def test_other_business_cannot_view(self):
        wr = await self.make_work_request()
        response = await self.call("GET", f"/api/work-requests/{wr['id']}", user=OTHER_BUSINESS)
        self.assertEqual(response.status_code, 403)

    async def test_digital_submission_needs_artifact(self):
        wr = await self.make_work_request()
        await self.ok("POST", f"/api/work-requests/{wr['id']}/accept", user=CONTRACTOR)
        response = await self.call("POST", f"/api/work-requests/{wr['id']}/submissions", user=CONTRACTOR, json={"notes": "x"})
        self.assertEqual(response.status_code, 422)

    async def test_latest_submission_404_before_any(self):
        wr = await self.make_work_request()
        response = await self.call("GET", f"/api/work-requests/{wr['id']}/submissions/latest")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["detail"], "No submissions yet")

    async def test_contractor_lists_only_own_work(self):
        wr = await self.make_work_request()
        listed = await self.ok("GET", f"/api/projects/{wr['projectId']}/work-requests", user=CONTRACTOR)
        self.assertEqual([w["id"] for w in listed], [wr["id"]])


class TestReview(ApiTestCase):
    async def test_request_changes_then_resubmit_shows_v2(self):
        wr, v1 = await self.make_submitted()
        base = f"/api/work-requests/{wr['id']}"
        body = await self.ok(
            "POST",
            f"{base}/submissions/{v1['id']}/review",
            json={"action": "request-changes", "reviewNotes": "Use the new logo", "submissionVersion": 1},
        )
        self.assertEqual(body["workRequest"]["status"], "needs_revision")
        self.assertEqual(body["events"][0]["type"], "submission.changes_requested")

        await self.ok(
            "POST",
            f"{base}/submissions",
            user=CONTRACTOR,
            json={"artifactUrl": "https://files.example.com/v2.zip", "notes": "new logo"},
        )
        latest = (await self.ok("GET", f"{base}/submissions/latest"))["submission"]
        self.assertEqual(latest["version"], 2)
        self.assertEqual(latest["artifactUrl"], "https://files.example.com/v2.zip")

        # A review still pointing at v1 is stale
        response = await self.call(
            "POST",
            f"{base}/submissions/{v1['id']}/review",
            json={"action": "reject", "reviewNotes": "nope", "submissionVersion": 1},
        )
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["latestVersion"], 2)

        history = await self.ok("GET", f"{base}/submissions")
        self.assertEqual([s["version"] for s in history["submissions"]], [1, 2])

    async def test_stale_payment_intent_for_v1(self):
        wr, v1 = await self.make_submitted()
        base = f"/api/work-requests/{wr['id']}"
        await self.ok(
            "POST",
            f"{base}/submissions/{v1['id']}/review",
            json={"action": "request-changes", "reviewNotes": "again", "submissionVersion": 1},
        )
        await self.ok("POST", f"{base}/submissions", user=CONTRACTOR, json={"artifactUrl": "https://x/v2"})
        response = await self.call("POST", f"{base}/submissions/{v1['id']}/payment-intent", json={"submissionVersion": 1})
        self.assertEqual(response.status_code, 409)
        self.assertEqual(self.gateway.create_calls, [])

    async def test_reject_requires_feedback(self):
        wr, sub = await self.make_submitted()
        response = await self.call(
            "POST",
            f"/api/work-requests/{wr['id']}/submissions/{sub['id']}/review",
            json={"action": "reject", "reviewNotes": "   ", "submissionVersion": 1},
        )
        self.assertEqual(response.status_code, 422)
        current = await self.ok("GET", f"/api/work-requests/{wr['id']}")
        self.assertEqual(current["status"], "submitted")

    async def test_reject_is_terminal(self):
        wr, sub = await self.make_submitted()
        body = await self.ok(
            "POST",
            f"/api/work-requests/{wr['id']}/submissions/{sub['id']}/review",
            json={"action": "reject", "reviewNotes": "Wrong brief", "submissionVersion": 1},
        )
        self.assertEqual(body["workRequest"]["status"], "rejected")
        self.assertEqual(body["submission"]["reviewNotes"], "Wrong brief")

    async def test_approve_through_review_needs_payment(self):
        wr, sub = await self.make_submitted()
        response = await self.call(
            "POST",
            f"/api/work-requests/{wr['id']}/submissions/{sub['id']}/review",
            json={"action": "approve", "submissionVersion": 1},
        )
        self.assertEqual(response.status_code, 402)

    async def test_contractor_cannot_review(self):
        wr, sub = await self.make_submitted()
        response = await self.call(
            "POST",
            f"/api/work-requests/{wr['id']}/submissions/{sub['id']}/review",
            user=CONTRACTOR,
            json={"action": "reject", "reviewNotes": "x", "submissionVersion": 1},
        )
        self.assertEqual(response.status_code, 403)


class TestApproveAfterPayment(ApiTestCase):
    async def test_intent_is_for_exact_amount(self):
        wr, sub = await self.make_submitted(amount="249.99")
        intent = await self.ok(
            "POST",
            f"/api/work-requests/{wr['id']}/submissions/{sub['id']}/payment-intent",
            json={"submissionVersion": 1},
        )
        self.assertEqual(intent["amount"], 24999)
        self.assertEqual(intent["currency"], "gbp")
        self.assertEqual(intent["metadata"]["work_request_id"], wr["id"])
        self.assertEqual(self.gateway.create_calls[0]["destination"], "acct_test_1")
        self.assertEqual(self.gateway.create_calls[0]["idempotency_key"], f"wr-{wr['id']}-sub-{sub['id']}-v1")

    async def test_finalize_approves_and_records_payment(self):
        wr, sub = await self.make_submitted()
        body = await self.pay_and_approve(wr, sub)
        self.assertFalse(body["alreadyFinalized"])
        self.assertEqual(body["workRequest"]["status"], "approved")
        self.assertEqual(body["submission"]["status"], "approved")
        self.assertEqual(body["payment"]["amount"], "150.00")
        self.assertEqual(body["events"][0]["type"], "work_request.approved")
        self.assertEqual(body["events"][0]["paymentId"], body["payment"]["id"])

        notifications = await self.ok("GET", "/api/notifications", user=CONTRACTOR)
        self.assertIn("payment_received", [n["type"] for n in notifications])

    async def test_finalize_is_idempotent(self):
        wr, sub = await self.make_submitted()
        first = await self.pay_and_approve(wr, sub)
        intent_id = first["payment"]["transferId"]
        again = await self.ok(
            "POST",
            f"/api/work-requests/{wr['id']}/submissions/{sub['id']}/approve-after-payment",
            json={"paymentIntentId": intent_id, "submissionVersion": 1},
        )
        self.assertTrue(again["alreadyFinalized"])
        self.assertEqual(again["payment"]["id"], first["payment"]["id"])
        async with self.sessions() as session:
            count = await session.scalar(select(func.count()).select_from(Payment))
        self.assertEqual(count, 1)

    async def test_unconfirmed_payment_is_402_and_leaves_submitted(self):
        wr, sub = await self.make_submitted()
        base = f"/api/work-requests/{wr['id']}/submissions/{sub['id']}"
        intent = await self.ok("POST", f"{base}/payment-intent", json={"submissionVersion": 1})
        response = await self.call(
            "POST",
            f"{base}/approve-after-payment",
            json={"paymentIntentId": intent["paymentIntentId"], "submissionVersion": 1},
        )
        self.assertEqual(response.status_code, 402)
        current = await self.ok("GET", f"/api/work-requests/{wr['id']}")
        self.assertEqual(current["status"], "submitted")

    async def test_reconciliation_lists_captured_but_unfinalized(self):
        wr, sub = await self.make_submitted()
        base = f"/api/work-requests/{wr['id']}/submissions/{sub['id']}"
        intent = await self.ok("POST", f"{base}/payment-intent", json={"submissionVersion": 1})
        self.assertEqual(await self.ok("GET", "/api/payments/reconciliation"), [])
        self.gateway.set_status(intent["paymentIntentId"], "succeeded")
        stuck = await self.ok("GET", "/api/payments/reconciliation")
        self.assertEqual([a["paymentIntentId"] for a in stuck], [intent["paymentIntentId"]])

        await self.ok(
            "POST",
            f"{base}/approve-after-payment",
            json={"paymentIntentId": intent["paymentIntentId"], "submissionVersion": 1},
        )
        self.assertEqual(await self.ok("GET", "/api/payments/reconciliation"), [])
        async with self.sessions() as session:
            attempt = await session.scalar(select(PaymentAttempt))
        self.assertEqual(attempt.status, "finalized")

    async def test_sync_marks_work_request_paid(self):
        wr, sub = await self.make_submitted()
        body = await self.pay_and_approve(wr, sub)
        self.gateway.set_status(body["payment"]["transferId"], "succeeded", transfer_succeeded=True)
        payment = await self.ok("POST", f"/api/payments/{body['payment']['id']}/sync")
        self.assertEqual(payment["status"], "paid")
        current = await self.ok("GET", f"/api/work-requests/{wr['id']}")
        self.assertEqual(current["status"], "paid")
        self.assertIsNotNone(current["paidAt"])


if __name__ == "__main__":
    unittest.main()
