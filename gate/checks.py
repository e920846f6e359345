"""
External static checks
Format check, linter and security scanner run as subprocesses; all advisory
"""

import json
import logging
import shutil
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import LintWarning
from .models import LintResult

logger = logging.getLogger(__name__)

OUTPUT_LIMIT = 20000


@dataclass(frozen=True)
class CmdResult:
    exit_code: int
    elapsed_seconds: float
    command_str: str
    stdout: str
    stderr: str


def run_cmd(cmd: List[str], cwd: Optional[Path] = None) -> CmdResult:
    """
    Run a subprocess and capture stdout/stderr (no shell=True)

    A missing executable is reported as exit code 127 instead of raising.
    """
    t0 = time.time()
    if shutil.which(cmd[0]) is None:
        return CmdResult(127, 0.0, " ".join(cmd), "", f"Executable '{cmd[0]}' not found on PATH")

    proc = subprocess.run(cmd, cwd=str(cwd) if cwd else None, text=True, capture_output=True)
    return CmdResult(
        exit_code=proc.returncode,
        elapsed_seconds=time.time() - t0,
        command_str=" ".join(cmd),
        stdout=proc.stdout or "",
        stderr=proc.stderr or "",
    )


def count_sarif_results(sarif: Dict[str, Any]) -> int:
    runs = sarif.get("runs") or []
    return sum(len(run.get("results") or []) for run in runs if isinstance(run, dict))


class ChecksRunner:
    """Runs the configured fmt, lint and scan commands in the project directory"""

    def __init__(self, work_dir: str, fmt_command: List[str] = None, lint_command: List[str] = None,
                 scan_command: List[str] = None, sarif_path: str = "results.sarif"):
        self.work_dir = Path(work_dir)
        self.fmt_command = fmt_command or []
        self.lint_command = lint_command or []
        self.scan_command = scan_command or []
        self.sarif_path = self.work_dir / sarif_path

    @property
    def has_fmt(self) -> bool:
        return bool(self.fmt_command)

    @property
    def has_scan(self) -> bool:
        return bool(self.scan_command)

    def _check(self, name: str, cmd: List[str]) -> LintResult:
        if not cmd:
            return LintResult(ok=True, command="", output=f"No {name} command configured")

        logger.info("Running %s: %s", name, " ".join(cmd))
        try:
            res = run_cmd(cmd, cwd=self.work_dir)
        except OSError as e:
            raise LintWarning(f"{name} could not be started: {e}")
        output = (res.stdout + res.stderr)[:OUTPUT_LIMIT]
        result = LintResult(ok=res.exit_code == 0, command=res.command_str, output=output, exit_code=res.exit_code)
        if not result.ok:
            raise LintWarning(f"{name} exited with {res.exit_code}:\n{output}")
        return result

    def fmt(self) -> LintResult:
        """Check formatting of the declarations"""
        return self._check("fmt", self.fmt_command)

    def lint(self) -> LintResult:
        """Static style and best-practice check of the declarations"""
        return self._check("lint", self.lint_command)

    def scan(self) -> LintResult:
        """
        Security scan producing SARIF at sarif_path

        A scan is considered failed when the scanner exits non-zero and
        leaves no SARIF behind, or when the SARIF holds findings.
        """
        if not self.scan_command:
            return LintResult(ok=True, command="", output="No scan command configured")

        logger.info("Running scan: %s", " ".join(self.scan_command))
        try:
            res = run_cmd(self.scan_command, cwd=self.work_dir)
        except OSError as e:
            raise LintWarning(f"scan could not be started: {e}")
        if not self.sarif_path.is_file():
            raise LintWarning(
                f"scan exited with {res.exit_code} and produced no SARIF at {self.sarif_path}:\n"
                f"{(res.stdout + res.stderr)[:OUTPUT_LIMIT]}"
            )
        try:
            sarif = json.loads(self.sarif_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise LintWarning(f"scan produced unreadable SARIF at {self.sarif_path}: {e}")

        findings = count_sarif_results(sarif)
        output = f"{findings} finding(s) written to {self.sarif_path.name}"
        if findings:
            raise LintWarning(output)
        return LintResult(ok=True, command=res.command_str, output=output, exit_code=res.exit_code)
