"""
Provisioning engine adapter
Drives the Pulumi program in this repository through the Automation API
against the shared S3 state backend
"""

import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional, Type

from pulumi import automation as auto

from .errors import (
    ApplyError,
    BackendUnreachable,
    DestroyError,
    GateError,
    PlanError,
    StateLocked,
    ValidationError,
)
from .models import (
    ApplyResult,
    BackendLocator,
    Credentials,
    DestroyResult,
    PlanResult,
    ValidationResult,
)

logger = logging.getLogger(__name__)

# DIY backends report lock contention in the command output only
LOCK_MARKERS = ("currently locked", "Another update is currently in progress")
SKIP_DIRS = {".git", ".venv", "venv", "__pycache__", "node_modules", "tests", ".pulumi"}


def is_lock_contention(error: Exception) -> bool:
    """Check if an engine error means another run holds the state lock"""
    if isinstance(error, auto.ConcurrentUpdateError):
        return True
    return any(marker in str(error) for marker in LOCK_MARKERS)


def change_counts(summary: Optional[Dict]) -> Dict[str, int]:
    """Normalize an engine change summary to {operation: count}"""
    return {getattr(op, "value", str(op)): int(count) for op, count in (summary or {}).items()}


class BoundState:
    """
    A stack attached to the remote state store

    Every engine operation goes through exclusive(), which is where lock
    denial becomes StateLocked instead of a generic failure.
    """

    def __init__(self, stack, backend: BackendLocator):
        self.stack = stack
        self.backend = backend
        self.validated = False

    @property
    def name(self) -> str:
        return self.stack.name

    def exclusive(self, operation: str, func: Callable, error_cls: Type[GateError]):
        try:
            return func()
        except auto.CommandError as e:
            if is_lock_contention(e):
                raise StateLocked(f"State for stack {self.name} is locked by another run during {operation}")
            raise error_cls(f"{operation} failed for stack {self.name}: {e}")
        except Exception as e:
            raise error_cls(f"{operation} failed for stack {self.name}: {type(e).__name__}: {e}")


class PulumiEngine:
    """Init, validate, preview, up and destroy for one stack"""

    def __init__(self, work_dir: str, stack_name: str, secrets_provider: Optional[str] = None,
                 stack_factory: Optional[Callable] = None):
        self.work_dir = str(Path(work_dir).resolve())
        self.stack_name = stack_name
        self.secrets_provider = secrets_provider
        self._stack_factory = stack_factory or auto.create_or_select_stack

    def _on_output(self, lines: List[str]) -> Callable[[str], None]:
        def emit(line: str) -> None:
            lines.append(line)
            logger.info("[pulumi] %s", line.rstrip())
        return emit

    def init(self, backend: BackendLocator, credentials: Credentials) -> BoundState:
        """
        Attach to the remote state store

        Args:
            backend: Bucket, key and region of the state store
            credentials: Credentials from authenticate()

        Returns:
            Handle for the selected stack

        Raises:
            BackendUnreachable: The store could not be reached or the stack selected
            StateLocked: Another run holds the lock
        """
        env_vars = {**credentials.as_env(backend.region), "PULUMI_BACKEND_URL": backend.url}
        opts = auto.LocalWorkspaceOptions(env_vars=env_vars, secrets_provider=self.secrets_provider)

        logger.info("Initializing stack %s with backend %s", self.stack_name, backend.url)
        try:
            stack = self._stack_factory(stack_name=self.stack_name, work_dir=self.work_dir, opts=opts)
            stack.set_config("aws:region", auto.ConfigValue(value=backend.region))
        except auto.CommandError as e:
            if is_lock_contention(e):
                raise StateLocked(f"State for stack {self.stack_name} is locked by another run")
            raise BackendUnreachable(f"Could not bind stack {self.stack_name} to {backend.url}: {e}")
        except Exception as e:
            raise BackendUnreachable(f"Pulumi workspace for stack {self.stack_name} could not be prepared: {e}")
        return BoundState(stack, backend)

    def validate(self, bound: BoundState) -> ValidationResult:
        """
        Check the declarations without touching the state store

        Raises:
            ValidationError: Project settings, entry point or a source file is malformed
        """
        problems: List[str] = []
        try:
            settings = bound.stack.workspace.project_settings()
        except Exception as e:
            raise ValidationError(f"Could not load project settings: {e}")

        runtime = getattr(settings.runtime, "name", settings.runtime)
        if runtime != "python":
            problems.append(f"Unsupported runtime {runtime!r}, expected 'python'")

        work_dir = Path(self.work_dir)
        program_root = (work_dir / (settings.main or "")).resolve()
        if program_root != work_dir and work_dir not in program_root.parents:
            raise ValidationError(f"Program main {settings.main!r} is outside the project directory {work_dir}")
        entry = program_root if program_root.suffix == ".py" else program_root / "__main__.py"
        if not entry.is_file():
            problems.append(f"Program entry point {entry} does not exist")

        checked = 0
        source_root = entry.parent if program_root.suffix == ".py" else program_root
        for path in sorted(source_root.rglob("*.py")):
            if SKIP_DIRS.intersection(path.relative_to(source_root).parts):
                continue
            checked += 1
            try:
                compile(path.read_text(encoding="utf-8"), str(path), "exec")
            except (SyntaxError, ValueError, OSError) as e:
                problems.append(f"{path.relative_to(work_dir)}: {e}")

        if problems:
            raise ValidationError("; ".join(problems))

        bound.validated = True
        logger.info("✅ Validated %d source files for project %s", checked, settings.name)
        return ValidationResult(ok=True, checked_files=checked)

    def plan(self, bound: BoundState) -> PlanResult:
        """Compute the changes needed to reconcile declared and actual state, without mutating"""
        lines: List[str] = []
        result = bound.exclusive("preview", lambda: bound.stack.preview(on_output=self._on_output(lines)), PlanError)
        return PlanResult(changes=change_counts(result.change_summary), output=result.stdout or "".join(lines))

    def apply(self, bound: BoundState) -> ApplyResult:
        """Apply the declarations to real infrastructure"""
        if not bound.validated:
            raise ApplyError("Refusing to apply: declarations were not validated in this run")
        lines: List[str] = []
        result = bound.exclusive("update", lambda: bound.stack.up(on_output=self._on_output(lines)), ApplyError)
        outputs = {
            key: "[secret]" if value.secret else value.value
            for key, value in (result.outputs or {}).items()
        }
        return ApplyResult(
            result=result.summary.result,
            changes=change_counts(result.summary.resource_changes),
            output=result.stdout or "".join(lines),
            outputs=outputs,
        )

    def destroy(self, bound: BoundState) -> DestroyResult:
        """Tear down every resource tracked in the stack's state"""
        lines: List[str] = []
        result = bound.exclusive("destroy", lambda: bound.stack.destroy(on_output=self._on_output(lines)), DestroyError)
        return DestroyResult(
            result=result.summary.result,
            changes=change_counts(result.summary.resource_changes),
            output=result.stdout or "".join(lines),
        )
