"""
Configuration management for the deployment gate
All options are sourced from the execution environment (GitHub Actions secrets and context)
"""

import os
import shlex
from typing import Dict, List, Mapping, Optional

from .errors import ConfigError
from .models import Action, BackendLocator

TRUTHY = ("1", "true", "yes", "on")

# Options each pipeline shape cannot run without
CLOUD_OPTIONS = ["AWS_REGION", "AWS_ROLE", "AWS_BUCKET_NAME", "AWS_BUCKET_KEY_NAME"]
REQUIRED_OPTIONS: Dict[Action, List[str]] = {
    Action.SKIP: [],
    Action.LINT_ONLY: [],
    Action.PLAN: CLOUD_OPTIONS + ["GITHUB_TOKEN"],
    Action.APPLY: CLOUD_OPTIONS + ["GITHUB_TOKEN"],
    Action.DESTROY: CLOUD_OPTIONS,
}


class GateConfig:
    """Centralized configuration for a gate run"""

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self.environ = dict(os.environ if environ is None else environ)
        env = self.environ

        # AWS Configuration
        self.aws_region = env.get("AWS_REGION", "")
        self.aws_role = env.get("AWS_ROLE", "")
        self.aws_account_id = env.get("AWS_SOURCE_ACCOUNT_ID", "")
        self.role_session_name = env.get("GATE_ROLE_SESSION_NAME") or "GitHub-OIDC-PULUMI"

        # State backend
        self.bucket_name = env.get("AWS_BUCKET_NAME", "")
        self.bucket_key = env.get("AWS_BUCKET_KEY_NAME", "")

        # GitHub context
        self.github_token = env.get("GITHUB_TOKEN", "")
        self.repository = env.get("GITHUB_REPOSITORY", "")
        self.event_name = env.get("GITHUB_EVENT_NAME", "")
        self.event_path = env.get("GITHUB_EVENT_PATH", "")
        self.api_url = (env.get("GITHUB_API_URL") or "https://api.github.com").rstrip("/")
        self.server_url = (env.get("GITHUB_SERVER_URL") or "https://github.com").rstrip("/")

        # Gate behaviour
        self.protected_branch = env.get("GATE_PROTECTED_BRANCH") or "main"
        self.skip_marker = env.get("GATE_SKIP_MARKER") or "skip-apply"
        self.stack_name = env.get("GATE_STACK") or "dev"
        self.work_dir = env.get("GATE_WORK_DIR") or "."
        self.secrets_provider = env.get("GATE_SECRETS_PROVIDER") or None
        self.lock_retries = self._int("GATE_LOCK_RETRIES", 3)
        self.lock_backoff_seconds = self._float("GATE_LOCK_BACKOFF_SECONDS", 10.0)
        self.destroy_requested = env.get("GATE_DESTROY", "").strip().lower() in TRUTHY
        self.log_level = (env.get("GATE_LOG_LEVEL") or "INFO").upper()

        # External checks
        self.fmt_command = self._command("GATE_FMT_COMMAND", "")
        self.lint_command = self._command("GATE_LINT_COMMAND", "ruff check .")
        self.scan_command = self._command("GATE_SCAN_COMMAND", "")
        self.sarif_path = env.get("GATE_SARIF_PATH") or "results.sarif"

    def _int(self, name: str, default: int) -> int:
        raw = self.environ.get(name)
        if not raw:
            return default
        try:
            return int(raw)
        except ValueError:
            raise ConfigError(f"{name} must be an integer, got {raw!r}")

    def _float(self, name: str, default: float) -> float:
        raw = self.environ.get(name)
        if not raw:
            return default
        try:
            return float(raw)
        except ValueError:
            raise ConfigError(f"{name} must be a number, got {raw!r}")

    def _command(self, name: str, default: str) -> List[str]:
        return shlex.split(self.environ.get(name, default))

    @property
    def backend(self) -> BackendLocator:
        """Remote state location triple"""
        return BackendLocator(bucket=self.bucket_name, key=self.bucket_key, region=self.aws_region)

    @property
    def role_arn(self) -> str:
        """Role to assume, expanded to a full ARN when only a name is configured"""
        if self.aws_role.startswith("arn:") or not self.aws_account_id:
            return self.aws_role
        return f"arn:aws:iam::{self.aws_account_id}:role/{self.aws_role}"

    def missing_options(self, action: Action) -> List[str]:
        return [name for name in REQUIRED_OPTIONS[action] if not self.environ.get(name)]

    def require(self, action: Action) -> None:
        """Fail before any step runs if an option the pipeline shape needs is absent"""
        missing = self.missing_options(action)
        if missing:
            raise ConfigError(f"Missing required configuration for {action.value}: {', '.join(missing)}")
        if "AWS_ROLE" in REQUIRED_OPTIONS[action] and not self.aws_role.startswith("arn:") and not self.aws_account_id:
            raise ConfigError(
                f"AWS_ROLE {self.aws_role!r} is not an ARN; AWS_SOURCE_ACCOUNT_ID is required to expand it"
            )


def get_config(environ: Optional[Mapping[str, str]] = None) -> GateConfig:
    """Get a configuration instance for the current environment"""
    return GateConfig(environ)
