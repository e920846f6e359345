"""
Gate error taxonomy
Every failure the deployment gate can surface, with its propagation policy
"""


class GateError(Exception):
    """Base class for all deployment gate errors"""

    # Halts the pipeline and fails the run
    fatal = True
    # Recorded in the report without changing the run status
    advisory = False
    # Safe to retry with backoff
    retryable = False


class ConfigError(GateError):
    """A required option is missing or malformed (pre-flight)"""


class AuthError(GateError):
    """The identity exchange was rejected"""


class BackendUnreachable(GateError):
    """The remote state store could not be reached"""


class StateLocked(GateError):
    """Another run holds the state lock"""

    retryable = True


class ValidationError(GateError):
    """The declarations are malformed"""

    # Blocking: later checks still run, then the run fails before any mutation
    fatal = False


class LintWarning(GateError):
    """Static analysis reported findings"""

    fatal = False
    advisory = True


class ProvenanceCheckFailed(GateError):
    """The pushed commit does not belong to a merged pull request"""


class PlanError(GateError):
    """The engine failed to compute a preview"""


class ApplyError(GateError):
    """The engine failed while applying changes"""


class DestroyError(GateError):
    """The engine failed while destroying resources"""


class GitHubError(GateError):
    """The source-control API returned an unexpected response"""
