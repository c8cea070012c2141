"""
Work request and milestone status tables.
Run from repo root: python -m pytest tests/test_workflow.py -v
"""
import unittest

from services.errors import PermissionDeniedError, StateConflictError
from services.workflow import (
    Action,
    MilestoneStatus,
    Role,
    WorkRequestStatus,
    allowed_actions,
    next_milestone_status,
    next_status,
)

EXPECTED = {
    WorkRequestStatus.PENDING: {Action.ACCEPT, Action.DECLINE},
    WorkRequestStatus.ACCEPTED: {Action.SUBMIT},
    WorkRequestStatus.SUBMITTED: {Action.APPROVE, Action.REJECT, Action.REQUEST_CHANGES},
    WorkRequestStatus.NEEDS_REVISION: {Action.RESUBMIT},
    WorkRequestStatus.APPROVED: set(),
    WorkRequestStatus.REJECTED: set(),
    WorkRequestStatus.DECLINED: set(),
    WorkRequestStatus.PAID: set(),
}


class TestAllowedActions(unittest.TestCase):
    def test_every_status_matches_table(self):
        for status, actions in EXPECTED.items():
            with self.subTest(status=status.value):
                self.assertEqual(set(allowed_actions(status)), actions)

    def test_role_filter(self):
        self.assertEqual(allowed_actions("submitted", Role.CONTRACTOR), frozenset())
        self.assertEqual(allowed_actions("pending", "business"), frozenset())
        self.assertEqual(allowed_actions("needs_revision", "contractor"), frozenset({Action.RESUBMIT}))

    def test_no_action_outside_its_status(self):
        for status in WorkRequestStatus:
            for action in Action:
                if action in EXPECTED[status]:
                    continue
                with self.subTest(status=status.value, action=action.value):
                    with self.assertRaises(StateConflictError):
                        next_status(status, action, Role.BUSINESS)


class TestTransitions(unittest.TestCase):
    def test_happy_path(self):
        status = next_status("pending", "accept", "contractor")
        status = next_status(status, "submit", "contractor")
        status = next_status(status, "request-changes", "business")
        self.assertEqual(status, WorkRequestStatus.NEEDS_REVISION)
        status = next_status(status, "resubmit", "contractor")
        self.assertEqual(next_status(status, "approve", "business"), WorkRequestStatus.APPROVED)

    def test_wrong_role_is_permission_error(self):
        with self.assertRaises(PermissionDeniedError):
            next_status("submitted", "approve", "contractor")

    def test_conflict_message_names_status(self):
        with self.assertRaises(StateConflictError) as ctx:
            next_status("approved", "reject", "business")
        self.assertEqual(ctx.exception.message, "Cannot reject work request with status: approved")

    def test_milestone_table(self):
        self.assertEqual(next_milestone_status("pending", "submit", "contractor"), MilestoneStatus.SUBMITTED)
        self.assertEqual(next_milestone_status("rejected", "resubmit", "contractor"), MilestoneStatus.SUBMITTED)
        self.assertEqual(next_milestone_status("submitted", "reject", "business"), MilestoneStatus.REJECTED)
        with self.assertRaises(StateConflictError):
            next_milestone_status("approved", "approve", "business")


if __name__ == "__main__":
    unittest.main()
