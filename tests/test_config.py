"""
Unit tests for gate configuration loading
"""

import unittest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from gate.config import GateConfig
from gate.errors import ConfigError
from gate.models import Action

FULL_ENV = {
    "AWS_REGION": "af-south-1",
    "AWS_ROLE": "arn:aws:iam::123456789012:role/github-deploy",
    "AWS_SOURCE_ACCOUNT_ID": "123456789012",
    "AWS_BUCKET_NAME": "builder-space-pulumi-state-af-south-1",
    "AWS_BUCKET_KEY_NAME": "eks/dev",
    "GITHUB_TOKEN": "ghs_token",
    "GITHUB_REPOSITORY": "org/infra",
}


class TestGateConfig(unittest.TestCase):
    """Test environment-sourced options and pre-flight checks"""

    def test_defaults(self):
        config = GateConfig({})
        self.assertEqual(config.protected_branch, "main")
        self.assertEqual(config.skip_marker, "skip-apply")
        self.assertEqual(config.stack_name, "dev")
        self.assertEqual(config.lock_retries, 3)
        self.assertEqual(config.lock_backoff_seconds, 10.0)
        self.assertEqual(config.lint_command, ["ruff", "check", "."])
        self.assertEqual(config.fmt_command, [])
        self.assertEqual(config.scan_command, [])
        self.assertEqual(config.api_url, "https://api.github.com")
        self.assertFalse(config.destroy_requested)

    def test_backend_locator(self):
        config = GateConfig(FULL_ENV)
        backend = config.backend
        self.assertEqual(backend.bucket, "builder-space-pulumi-state-af-south-1")
        self.assertEqual(backend.url, "s3://builder-space-pulumi-state-af-south-1/eks/dev?region=af-south-1")

    def test_backend_url_without_key(self):
        config = GateConfig({**FULL_ENV, "AWS_BUCKET_KEY_NAME": "/"})
        self.assertEqual(config.backend.url, "s3://builder-space-pulumi-state-af-south-1?region=af-south-1")

    def test_require_passes_with_full_env(self):
        config = GateConfig(FULL_ENV)
        for action in Action:
            with self.subTest(action=action):
                config.require(action)

    def test_require_reports_missing_options(self):
        env = dict(FULL_ENV)
        del env["AWS_ROLE"]
        del env["GITHUB_TOKEN"]
        config = GateConfig(env)
        with self.assertRaises(ConfigError) as ctx:
            config.require(Action.APPLY)
        self.assertIn("AWS_ROLE", str(ctx.exception))
        self.assertIn("GITHUB_TOKEN", str(ctx.exception))

    def test_destroy_does_not_need_github_token(self):
        env = dict(FULL_ENV)
        del env["GITHUB_TOKEN"]
        GateConfig(env).require(Action.DESTROY)

    def test_lint_only_needs_nothing(self):
        GateConfig({}).require(Action.LINT_ONLY)

    def test_role_name_expanded_with_account(self):
        config = GateConfig({**FULL_ENV, "AWS_ROLE": "github-deploy"})
        self.assertEqual(config.role_arn, "arn:aws:iam::123456789012:role/github-deploy")

    def test_role_name_without_account_fails_preflight(self):
        env = {**FULL_ENV, "AWS_ROLE": "github-deploy"}
        del env["AWS_SOURCE_ACCOUNT_ID"]
        with self.assertRaises(ConfigError):
            GateConfig(env).require(Action.PLAN)

    def test_invalid_number(self):
        with self.assertRaises(ConfigError):
            GateConfig({"GATE_LOCK_RETRIES": "many"})

    def test_commands_are_split(self):
        config = GateConfig({"GATE_SCAN_COMMAND": "bandit -r infra -f sarif -o 'results.sarif'"})
        self.assertEqual(config.scan_command, ["bandit", "-r", "infra", "-f", "sarif", "-o", "results.sarif"])

    def test_destroy_flag(self):
        self.assertTrue(GateConfig({"GATE_DESTROY": "true"}).destroy_requested)
        self.assertFalse(GateConfig({"GATE_DESTROY": "no"}).destroy_requested)


if __name__ == '__main__':
    unittest.main()
