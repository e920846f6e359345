"""
Pipeline shape selection
Pure decision function from a trigger event to the pipeline the gate will run
"""

from .models import Action, EventKind, GateDecision, TriggerEvent

DEFAULT_PROTECTED_BRANCH = "main"
DEFAULT_SKIP_MARKER = "skip-apply"


def has_skip_marker(message: str, skip_marker: str = DEFAULT_SKIP_MARKER) -> bool:
    """Check whether a commit message opts out of apply"""
    return bool(skip_marker) and skip_marker in (message or "")


def classify(event: TriggerEvent,
             protected_branch: str = DEFAULT_PROTECTED_BRANCH,
             skip_marker: str = DEFAULT_SKIP_MARKER) -> GateDecision:
    """
    Decide which pipeline shape a trigger event gets

    No I/O happens here. An APPLY decision only means the event is eligible;
    merge provenance is still verified before anything is mutated.

    Args:
        event: The trigger event
        protected_branch: Branch whose pushes may be applied
        skip_marker: Commit message marker that suppresses apply

    Returns:
        Decision with the selected action and a human readable reason
    """
    if event.kind == EventKind.MANUAL:
        if event.destroy_requested:
            return GateDecision(Action.DESTROY, "manual dispatch requested destroy")
        return GateDecision(Action.PLAN, "manual dispatch without destroy runs a plan")

    if event.kind == EventKind.PULL_REQUEST:
        if event.pr_action == "closed":
            return GateDecision(Action.SKIP, f"pull request #{event.pr_number} was closed")
        return GateDecision(Action.PLAN, f"pull request #{event.pr_number} is planned, never applied")

    if event.branch != protected_branch:
        return GateDecision(
            Action.LINT_ONLY, f"push to {event.branch or '<unknown>'} is not the protected branch {protected_branch}"
        )
    if has_skip_marker(event.commit_message, skip_marker):
        return GateDecision(Action.SKIP, f"commit message contains skip marker '{skip_marker}'")
    return GateDecision(Action.APPLY, f"push to protected branch {protected_branch}, pending merge provenance")
