"""
Deployment Gate
Runs the pipeline shape selected for a trigger event, step by step,
short-circuiting on the first fatal failure and always reporting
"""

import logging
import time
from typing import Any, Callable, List, Optional

from .auth import Authenticator
from .checks import ChecksRunner
from .classify import classify
from .config import GateConfig
from .engine import BoundState, PulumiEngine
from .errors import ConfigError, GateError, ProvenanceCheckFailed
from .github import GitHubClient, verify_merge_provenance
from .models import (
    Action,
    ApplyResult,
    Credentials,
    DestroyResult,
    EventKind,
    GateDecision,
    LintResult,
    Outcome,
    PlanResult,
    Report,
    RunOutcome,
    StepResult,
    TriggerEvent,
    ValidationResult,
)
from .report import Reporter
from .retry import retry_with_backoff

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def describe(value: Any) -> str:
    """One-line or full-text summary of a step's return value for the report"""
    if isinstance(value, Credentials):
        return f"Assumed {value.assumed_role_arn or 'role'}"
    if isinstance(value, BoundState):
        return f"Stack {value.name} bound to {value.backend.url}"
    if isinstance(value, ValidationResult):
        return f"{value.checked_files} source file(s) compiled"
    if isinstance(value, (LintResult, PlanResult, ApplyResult, DestroyResult)):
        return value.output
    if isinstance(value, int):
        return f"Merged pull request #{value}"
    return ""


class DeploymentGate:
    """Orchestrates authenticate, init, validate, lint, plan/apply/destroy and report"""

    def __init__(self, config: GateConfig, authenticator: Authenticator, engine: PulumiEngine,
                 checks: ChecksRunner, github: Optional[GitHubClient] = None,
                 reporter: Optional[Reporter] = None, sleep: Callable[[float], None] = time.sleep):
        self.config = config
        self.authenticator = authenticator
        self.engine = engine
        self.checks = checks
        self.github = github
        self.reporter = reporter or Reporter(github)
        self.sleep = sleep

    @classmethod
    def from_config(cls, config: GateConfig) -> "DeploymentGate":
        """Wire the real collaborators from configuration"""
        github = None
        if config.github_token and config.repository:
            github = GitHubClient(config.repository, config.github_token, api_url=config.api_url)
        authenticator = Authenticator(
            role_arn=config.role_arn,
            region=config.aws_region,
            session_name=config.role_session_name,
            expected_account_id=config.aws_account_id,
        )
        return cls(
            config=config,
            authenticator=authenticator,
            engine=PulumiEngine(config.work_dir, config.stack_name, secrets_provider=config.secrets_provider),
            checks=ChecksRunner(
                config.work_dir,
                fmt_command=config.fmt_command,
                lint_command=config.lint_command,
                scan_command=config.scan_command,
                sarif_path=config.sarif_path,
            ),
            github=github,
            reporter=Reporter(github, step_summary_path=config.environ.get("GITHUB_STEP_SUMMARY", "")),
        )

    def _step(self, steps: List[StepResult], name: str, func: Callable[[], Any]) -> Any:
        logger.info("▶ %s", name)
        try:
            value = func()
        except GateError as e:
            steps.append(StepResult(name, Outcome.FAILURE, str(e), advisory=e.advisory))
            if e.fatal:
                logger.error("❌ %s failed: %s", name, e)
                raise
            if e.advisory:
                logger.warning("⚠️ %s failed (advisory): %s", name, e)
            else:
                logger.error("❌ %s failed, continuing checks before stopping: %s", name, e)
            return None
        except Exception as e:
            steps.append(StepResult(name, Outcome.FAILURE, f"{type(e).__name__}: {e}"))
            logger.exception("❌ %s failed unexpectedly", name)
            raise GateError(f"{name} failed unexpectedly: {e}") from e
        steps.append(StepResult(name, Outcome.SUCCESS, describe(value)))
        logger.info("✅ %s", name)
        return value

    def _with_lock_retry(self, func: Callable[[], Any]) -> Any:
        return retry_with_backoff(
            func,
            max_retries=self.config.lock_retries,
            initial_delay=self.config.lock_backoff_seconds,
            sleep=self.sleep,
        )

    def _verify_provenance(self, event: TriggerEvent) -> int:
        if self.github is None:
            raise ProvenanceCheckFailed("No GitHub client configured; cannot verify merge provenance")
        number = verify_merge_provenance(self.github, event.commit_sha)
        if number is None:
            raise ProvenanceCheckFailed(
                f"Commit {event.commit_sha or '<unknown>'} did not come from a merged PR. Skipping apply."
            )
        return number

    def _scan(self, steps: List[StepResult], event: TriggerEvent) -> None:
        self._step(steps, "scan", self.checks.scan)
        if self.github is None or not self.checks.sarif_path.is_file():
            return
        try:
            upload_id = self.github.upload_sarif(event.commit_sha, event.ref, self.checks.sarif_path)
            logger.info("Uploaded SARIF findings (%s)", upload_id)
        except (GateError, OSError) as e:
            logger.warning("Could not upload SARIF findings: %s", e)

    def _finish(self, event: TriggerEvent, decision: GateDecision, steps: List[StepResult],
                target: Optional[int], exit_code: int) -> RunOutcome:
        report = Report(event=event, decision=decision, steps=steps, target=target, succeeded=exit_code == EXIT_OK)
        self.reporter.deliver(report)
        return RunOutcome(exit_code=exit_code, decision=decision, steps=steps, report=report)

    def run(self, event: TriggerEvent) -> RunOutcome:
        """
        Evaluate an event and run its pipeline

        Args:
            event: The trigger event for this run

        Returns:
            Exit code, decision and the ordered step results
        """
        decision = classify(event, self.config.protected_branch, self.config.skip_marker)
        logger.info("Gate decision: %s (%s)", decision.action.value, decision.reason)
        if decision.action == Action.SKIP:
            return RunOutcome(exit_code=EXIT_OK, decision=decision)

        steps: List[StepResult] = []
        target = event.pr_number if event.kind == EventKind.PULL_REQUEST else None

        try:
            self.config.require(decision.action)
        except ConfigError as e:
            logger.error("❌ Configuration error: %s", e)
            return self._finish(event, decision, steps, None, EXIT_CONFIG)

        try:
            if not decision.authenticates:
                if self.checks.has_fmt:
                    self._step(steps, "fmt", self.checks.fmt)
                self._step(steps, "lint", self.checks.lint)
                if self.checks.has_scan:
                    self._scan(steps, event)
                return self._finish(event, decision, steps, target, EXIT_OK)

            credentials = self._step(steps, "authenticate", lambda: self.authenticator.login(self.config.environ))
            bound = self._step(
                steps, "init", lambda: self._with_lock_retry(lambda: self.engine.init(self.config.backend, credentials))
            )

            if decision.action == Action.DESTROY:
                self._step(steps, "destroy", lambda: self._with_lock_retry(lambda: self.engine.destroy(bound)))
                return self._finish(event, decision, steps, None, EXIT_OK)

            validation = self._step(steps, "validate", lambda: self.engine.validate(bound))
            if self.checks.has_fmt:
                self._step(steps, "fmt", self.checks.fmt)
            self._step(steps, "lint", self.checks.lint)
            if validation is None:
                logger.error("❌ Declarations failed validation; stopping before %s", decision.action.value)
                return self._finish(event, decision, steps, target, EXIT_FAILED)

            if decision.action == Action.PLAN:
                if self.checks.has_scan:
                    self._scan(steps, event)
                self._step(steps, "plan", lambda: self._with_lock_retry(lambda: self.engine.plan(bound)))
                return self._finish(event, decision, steps, target, EXIT_OK)

            target = self._step(steps, "provenance", lambda: self._verify_provenance(event))
            self._step(steps, "apply", lambda: self._with_lock_retry(lambda: self.engine.apply(bound)))
            return self._finish(event, decision, steps, target, EXIT_OK)
        except GateError:
            return self._finish(event, decision, steps, target, EXIT_FAILED)
