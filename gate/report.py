"""
Run reports
Renders step results as Markdown and delivers them to the pull request or the run logs
"""

import logging
from typing import List, Optional

from .errors import GitHubError
from .github import GitHubClient
from .models import Action, Outcome, Report, StepResult

logger = logging.getLogger(__name__)

STEP_LABELS = {
    "authenticate": "Authentication 🔐",
    "init": "Initialization ⚙️",
    "validate": "Validation 🤖",
    "fmt": "Format and Style 🖌",
    "lint": "Lint 🔍",
    "scan": "Security Scan 🛡",
    "provenance": "Merge Provenance 🔗",
    "plan": "Preview 📖",
    "apply": "Update 🚀",
    "destroy": "Destroy 💥",
}
OUTCOME_ICONS = {Outcome.SUCCESS: "✅", Outcome.FAILURE: "❌", Outcome.SKIPPED: "⏭"}
ENGINE_STEPS = ("plan", "apply", "destroy")
DETAIL_LIMIT = 60000


def _title(report: Report) -> str:
    action = report.decision.action
    if action == Action.APPLY:
        if report.succeeded:
            return "✅ **Pulumi Up Completed Successfully**"
        if any(step.name == "provenance" and step.failed for step in report.steps):
            return "⛔ **Apply Aborted: no merged pull request**"
        return "❌ **Pulumi Up Failed**"
    icon = "✅" if report.succeeded else "❌"
    names = {
        Action.PLAN: "Pulumi Preview",
        Action.DESTROY: "Pulumi Destroy",
        Action.LINT_ONLY: "Static Checks",
        Action.SKIP: "Deployment Skipped",
    }
    return f"{icon} **{names[action]} {'Succeeded' if report.succeeded else 'Failed'}**"


def _details(step: StepResult) -> List[str]:
    output = step.output.strip()
    if not output:
        return []
    if len(output) > DETAIL_LIMIT:
        output = output[-DETAIL_LIMIT:]
    summary = f"Show {STEP_LABELS.get(step.name, step.name)}"
    return ["", f"<details><summary>{summary}</summary>", "", "```", output, "```", "", "</details>"]


def render_report(report: Report) -> str:
    """Render a report as a Markdown comment body"""
    lines = [_title(report), ""]
    if report.decision.action == Action.APPLY and report.succeeded:
        lines += ["All resources have been provisioned as per the merged PR.", ""]
    lines.append(f"_{report.decision.reason}_")
    lines += ["", "| Step | Outcome |", "|---|---|"]
    for step in report.steps:
        note = " (advisory)" if step.advisory and step.failed else ""
        label = STEP_LABELS.get(step.name, step.name)
        lines.append(f"| {label} | {OUTCOME_ICONS[step.outcome]} `{step.outcome.value}`{note} |")

    for step in report.steps:
        if step.name in ENGINE_STEPS or step.failed:
            lines += _details(step)

    event = report.event
    lines += ["", f"*Actor: @{event.actor or 'unknown'}, Event: `{event.kind.value}`, Workflow: `{event.workflow or 'n/a'}`*"]
    if event.run_url:
        lines.append(f"[Run logs]({event.run_url})")
    return "\n".join(lines)


class Reporter:
    """Best-effort delivery of run reports"""

    def __init__(self, github: Optional[GitHubClient] = None, step_summary_path: str = ""):
        self.github = github
        self.step_summary_path = step_summary_path

    def deliver(self, report: Report) -> bool:
        """
        Post the report as a pull request comment, or write it to the run logs

        Never raises; a failed delivery is logged and reported as False.
        """
        try:
            body = render_report(report)
        except Exception:
            logger.exception("Could not render the run report")
            return False

        if report.target is not None and self.github is not None:
            try:
                url = self.github.post_comment(report.target, body)
            except GitHubError as e:
                logger.error("Could not comment on PR #%s: %s", report.target, e)
                return False
            except Exception:
                logger.exception("Unexpected error commenting on PR #%s", report.target)
                return False
            logger.info("Posted report on PR #%s %s", report.target, url)
            return True

        logger.info("Run report:\n%s", body)
        if self.step_summary_path:
            try:
                with open(self.step_summary_path, "a", encoding="utf-8") as f:
                    f.write(body + "\n")
            except OSError as e:
                logger.warning("Could not write step summary: %s", e)
        return True
