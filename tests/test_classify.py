"""
Unit tests for pipeline shape selection
The decision function is pure, so every trigger is exercised without any engine
"""

import unittest
import sys
import os

# Add project root to path so we can import the gate package
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from gate.classify import classify, has_skip_marker
from gate.models import Action, EventKind, TriggerEvent


def push(ref="refs/heads/main", message="Merge pull request #42 from org/feature"):
    return TriggerEvent(kind=EventKind.PUSH, ref=ref, commit_sha="abc123", commit_message=message)


class TestClassify(unittest.TestCase):
    """Test that each trigger maps to exactly one pipeline shape"""

    def test_push_to_protected_branch_is_apply(self):
        decision = classify(push())
        self.assertEqual(decision.action, Action.APPLY)
        self.assertIn("provenance", decision.reason)

    def test_push_to_other_branch_is_lint_only(self):
        decision = classify(push(ref="refs/heads/feature/vpc"))
        self.assertEqual(decision.action, Action.LINT_ONLY)
        self.assertIn("feature/vpc", decision.reason)

    def test_custom_protected_branch(self):
        self.assertEqual(classify(push(ref="refs/heads/release"), protected_branch="release").action, Action.APPLY)
        self.assertEqual(classify(push(), protected_branch="release").action, Action.LINT_ONLY)

    def test_skip_marker_suppresses_apply(self):
        """A commit message equal to the marker never reaches apply"""
        self.assertEqual(classify(push(message="skip-apply")).action, Action.SKIP)

    def test_skip_marker_inside_message(self):
        decision = classify(push(message="Tidy tags\n\nskip-apply"))
        self.assertEqual(decision.action, Action.SKIP)

    def test_custom_skip_marker(self):
        self.assertEqual(classify(push(message="[no deploy]"), skip_marker="[no deploy]").action, Action.SKIP)
        self.assertEqual(classify(push(message="skip-apply"), skip_marker="[no deploy]").action, Action.APPLY)

    def test_pull_request_is_plan(self):
        for action in ("opened", "synchronize", "reopened", None):
            with self.subTest(action=action):
                event = TriggerEvent(kind=EventKind.PULL_REQUEST, pr_number=7, pr_action=action)
                decision = classify(event)
                self.assertEqual(decision.action, Action.PLAN)
                self.assertNotIn(decision.action, (Action.APPLY, Action.DESTROY))

    def test_pull_request_with_skip_marker_still_plans(self):
        event = TriggerEvent(kind=EventKind.PULL_REQUEST, pr_number=7, commit_message="skip-apply")
        self.assertEqual(classify(event).action, Action.PLAN)

    def test_closed_pull_request_is_skipped(self):
        event = TriggerEvent(kind=EventKind.PULL_REQUEST, pr_number=7, pr_action="closed")
        self.assertEqual(classify(event).action, Action.SKIP)

    def test_manual_destroy(self):
        event = TriggerEvent(kind=EventKind.MANUAL, ref="refs/heads/main", destroy_requested=True)
        self.assertEqual(classify(event).action, Action.DESTROY)

    def test_manual_without_destroy_is_plan(self):
        event = TriggerEvent(kind=EventKind.MANUAL, ref="refs/heads/main")
        self.assertEqual(classify(event).action, Action.PLAN)

    def test_destroy_never_from_push_or_pull_request(self):
        """Destroy is only reachable from a manual dispatch"""
        events = [
            push(),
            push(ref="refs/heads/dev"),
            TriggerEvent(kind=EventKind.PULL_REQUEST, pr_number=1, destroy_requested=True),
            TriggerEvent(kind=EventKind.PUSH, ref="refs/heads/main", destroy_requested=True),
        ]
        for event in events:
            with self.subTest(event=event):
                self.assertNotEqual(classify(event).action, Action.DESTROY)

    def test_has_skip_marker(self):
        self.assertTrue(has_skip_marker("skip-apply"))
        self.assertFalse(has_skip_marker(""))
        self.assertFalse(has_skip_marker("apply everything"))
        self.assertFalse(has_skip_marker("skip-apply", skip_marker=""))


if __name__ == '__main__':
    unittest.main()
