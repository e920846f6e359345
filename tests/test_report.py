"""
Unit tests for report rendering and delivery
"""

import os
import sys
import tempfile
import unittest
from unittest.mock import Mock

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from gate.errors import GitHubError
from gate.models import Action, EventKind, GateDecision, Outcome, Report, StepResult, TriggerEvent
from gate.report import Reporter, render_report

EVENT = TriggerEvent(
    kind=EventKind.PUSH,
    ref="refs/heads/main",
    commit_sha="mergesha",
    actor="octocat",
    workflow="Pulumi EKS",
    run_url="https://github.com/org/infra/actions/runs/991",
)
APPLY = GateDecision(Action.APPLY, "push to protected branch main, pending merge provenance")


def apply_report(succeeded=True, target=42):
    steps = [
        StepResult("authenticate", Outcome.SUCCESS, "Assumed role"),
        StepResult("lint", Outcome.FAILURE, "F401 unused import", advisory=True),
        StepResult("apply", Outcome.SUCCESS, "Resources: + 3 created"),
    ]
    return Report(event=EVENT, decision=APPLY, steps=steps, target=target, succeeded=succeeded)


class TestRenderReport(unittest.TestCase):
    """Test the Markdown body"""

    def test_apply_success(self):
        body = render_report(apply_report())
        self.assertTrue(body.startswith("✅ **Pulumi Up Completed Successfully**"))
        self.assertIn("All resources have been provisioned as per the merged PR.", body)
        self.assertIn("Resources: + 3 created", body)
        self.assertIn("(advisory)", body)
        self.assertIn("@octocat", body)
        self.assertIn("[Run logs](https://github.com/org/infra/actions/runs/991)", body)

    def test_apply_failure(self):
        body = render_report(apply_report(succeeded=False))
        self.assertIn("Pulumi Up Failed", body)
        self.assertNotIn("All resources have been provisioned", body)

    def test_provenance_abort_title(self):
        report = Report(
            event=EVENT,
            decision=APPLY,
            steps=[StepResult("provenance", Outcome.FAILURE, "Commit directsha did not come from a merged PR.")],
            succeeded=False,
        )
        body = render_report(report)
        self.assertTrue(body.startswith("⛔ **Apply Aborted: no merged pull request**"))
        self.assertNotIn("Pulumi Up Failed", body)

    def test_plan_title(self):
        report = Report(
            event=TriggerEvent(kind=EventKind.PULL_REQUEST, pr_number=7),
            decision=GateDecision(Action.PLAN, "pull request #7 is planned, never applied"),
            steps=[StepResult("plan", Outcome.SUCCESS, "+ 2 to create")],
            target=7,
        )
        body = render_report(report)
        self.assertIn("Pulumi Preview Succeeded", body)
        self.assertIn("<details>", body)


class TestReporter(unittest.TestCase):
    """Test best-effort delivery"""

    def test_posts_comment_on_target(self):
        github = Mock()
        github.post_comment.return_value = "https://github.com/org/infra/pull/42#c1"
        self.assertTrue(Reporter(github).deliver(apply_report()))
        number, body = github.post_comment.call_args.args
        self.assertEqual(number, 42)
        self.assertIn("Pulumi Up Completed Successfully", body)

    def test_comment_failure_does_not_raise(self):
        github = Mock()
        github.post_comment.side_effect = GitHubError("HTTP 403")
        self.assertFalse(Reporter(github).deliver(apply_report()))

    def test_unexpected_comment_error_does_not_raise(self):
        github = Mock()
        github.post_comment.side_effect = RuntimeError("connection pool closed")
        self.assertFalse(Reporter(github).deliver(apply_report()))

    def test_no_target_writes_step_summary(self):
        github = Mock()
        with tempfile.TemporaryDirectory() as tmpdir:
            summary = os.path.join(tmpdir, "summary.md")
            self.assertTrue(Reporter(github, step_summary_path=summary).deliver(apply_report(target=None)))
            with open(summary, encoding="utf-8") as f:
                self.assertIn("Pulumi Up", f.read())
        github.post_comment.assert_not_called()


if __name__ == '__main__':
    unittest.main()
