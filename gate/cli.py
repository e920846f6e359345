"""
Command line entry point

Usage:
  python -m gate run                      # gate the current GitHub Actions event
  python -m gate run --destroy            # manual dispatch requesting destroy
  python -m gate classify --event-name push --event-path event.json
"""

import argparse
import logging
import sys
from typing import List, Optional

from .classify import classify
from .config import get_config
from .errors import ConfigError
from .events import load_event
from .pipeline import EXIT_CONFIG, DeploymentGate

logger = logging.getLogger("gate")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gate",
        description="Decide whether a commit may change live infrastructure, then plan, apply or destroy.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("run", "Run the pipeline selected for the current event"),
        ("classify", "Print the gate decision without running any step"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--event-name", help="Override GITHUB_EVENT_NAME (push, pull_request, workflow_dispatch)")
        p.add_argument("--event-path", help="Override GITHUB_EVENT_PATH (webhook payload JSON)")
        p.add_argument("--destroy", action="store_true", help="Request destroy for a manual dispatch")

    return parser


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = get_config()
    except ConfigError as e:
        setup_logging("INFO")
        logger.error("❌ %s", e)
        return EXIT_CONFIG
    setup_logging(config.log_level)

    try:
        event = load_event(config, event_name=args.event_name, event_path=args.event_path, destroy=args.destroy)
    except ConfigError as e:
        logger.error("❌ %s", e)
        return EXIT_CONFIG

    if args.command == "classify":
        decision = classify(event, config.protected_branch, config.skip_marker)
        print(f"{decision.action.value}: {decision.reason}")
        return 0

    outcome = DeploymentGate.from_config(config).run(event)
    if outcome.exit_code == 0:
        logger.info("✅ Gate finished: %s", outcome.decision.action.value)
    else:
        logger.error("❌ Gate failed (%s) with exit code %d", outcome.decision.action.value, outcome.exit_code)
    return outcome.exit_code


if __name__ == "__main__":
    sys.exit(main())
