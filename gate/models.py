"""
Gate data model
Event-scoped values passed between the classifier, the pipeline steps and the reporter
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class EventKind(str, Enum):
    PUSH = "push"
    PULL_REQUEST = "pull_request"
    MANUAL = "manual"


class Action(str, Enum):
    LINT_ONLY = "lint-only"
    PLAN = "plan"
    APPLY = "apply"
    DESTROY = "destroy"
    SKIP = "skip"


class Outcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class TriggerEvent:
    """A push, pull request update or manual dispatch that started a run"""

    kind: EventKind
    ref: str = ""
    commit_sha: str = ""
    actor: str = ""
    commit_message: str = ""
    pr_number: Optional[int] = None
    pr_action: Optional[str] = None
    destroy_requested: bool = False
    workflow: str = ""
    run_url: str = ""

    @property
    def branch(self) -> str:
        """Branch name without the refs/heads/ prefix"""
        prefix = "refs/heads/"
        if self.ref.startswith(prefix):
            return self.ref[len(prefix):]
        return self.ref


@dataclass(frozen=True)
class GateDecision:
    action: Action
    reason: str

    @property
    def authenticates(self) -> bool:
        """Whether the pipeline shape needs cloud credentials"""
        return self.action in (Action.PLAN, Action.APPLY, Action.DESTROY)


@dataclass(frozen=True)
class StepResult:
    name: str
    outcome: Outcome
    output: str = ""
    advisory: bool = False

    @property
    def failed(self) -> bool:
        return self.outcome == Outcome.FAILURE


@dataclass(frozen=True)
class Credentials:
    access_key_id: str
    secret_access_key: str
    session_token: str
    account_id: str = ""
    assumed_role_arn: str = ""

    def as_env(self, region: str) -> Dict[str, str]:
        """Environment variables understood by the AWS SDKs and the Pulumi AWS provider"""
        return {
            "AWS_ACCESS_KEY_ID": self.access_key_id,
            "AWS_SECRET_ACCESS_KEY": self.secret_access_key,
            "AWS_SESSION_TOKEN": self.session_token,
            "AWS_REGION": region,
            "AWS_DEFAULT_REGION": region,
        }


@dataclass(frozen=True)
class BackendLocator:
    """Location triple of the remote state store"""

    bucket: str
    key: str
    region: str

    @property
    def url(self) -> str:
        key = self.key.strip("/")
        path = f"{self.bucket}/{key}" if key else self.bucket
        return f"s3://{path}?region={self.region}"


@dataclass
class ValidationResult:
    ok: bool
    problems: List[str] = field(default_factory=list)
    checked_files: int = 0


@dataclass
class LintResult:
    ok: bool
    command: str
    output: str = ""
    exit_code: int = 0


@dataclass
class PlanResult:
    changes: Dict[str, int]
    output: str = ""

    @property
    def has_changes(self) -> bool:
        return any(count for op, count in self.changes.items() if op != "same")


@dataclass
class ApplyResult:
    result: str
    changes: Dict[str, int]
    output: str = ""
    outputs: Dict[str, object] = field(default_factory=dict)


@dataclass
class DestroyResult:
    result: str
    changes: Dict[str, int]
    output: str = ""


@dataclass
class Report:
    event: TriggerEvent
    decision: GateDecision
    steps: List[StepResult]
    target: Optional[int] = None
    succeeded: bool = True


@dataclass
class RunOutcome:
    exit_code: int
    decision: GateDecision
    steps: List[StepResult] = field(default_factory=list)
    report: Optional[Report] = None

    @property
    def step_names(self) -> List[str]:
        return [step.name for step in self.steps]
