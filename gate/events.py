"""
Trigger event loading
Builds a TriggerEvent from the GitHub Actions context and webhook payload
"""

import json
import logging
from dataclasses import replace
from typing import Any, Dict, Optional

from .config import GateConfig, TRUTHY
from .errors import ConfigError
from .models import EventKind, TriggerEvent

logger = logging.getLogger(__name__)

EVENT_KINDS = {
    "push": EventKind.PUSH,
    "pull_request": EventKind.PULL_REQUEST,
    "pull_request_target": EventKind.PULL_REQUEST,
    "workflow_dispatch": EventKind.MANUAL,
}


def load_payload(path: str) -> Dict[str, Any]:
    """
    Read the webhook payload GitHub writes for the running workflow

    Args:
        path: Value of GITHUB_EVENT_PATH

    Returns:
        Parsed payload, empty when no path is given
    """
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Could not read event payload {path}: {e}")


def event_from_payload(event_name: str, payload: Dict[str, Any], config: GateConfig) -> TriggerEvent:
    """
    Translate a GitHub event name and payload into a TriggerEvent

    Args:
        event_name: GITHUB_EVENT_NAME
        payload: Webhook payload
        config: Gate configuration (context fallbacks and run URL)

    Returns:
        The trigger event for this run
    """
    kind = EVENT_KINDS.get(event_name)
    if kind is None:
        raise ConfigError(f"Unsupported trigger event: {event_name or '<unset>'}")

    env = config.environ
    sender = (payload.get("sender") or {}).get("login", "")
    actor = env.get("GITHUB_ACTOR") or sender
    ref = env.get("GITHUB_REF") or payload.get("ref", "")
    run_url = ""
    if config.repository and env.get("GITHUB_RUN_ID"):
        run_url = f"{config.server_url}/{config.repository}/actions/runs/{env['GITHUB_RUN_ID']}"
    common = {
        "kind": kind,
        "actor": actor,
        "workflow": env.get("GITHUB_WORKFLOW", ""),
        "run_url": run_url,
    }

    if kind == EventKind.PUSH:
        head_commit = payload.get("head_commit") or {}
        return TriggerEvent(
            ref=payload.get("ref") or ref,
            commit_sha=head_commit.get("id") or payload.get("after") or env.get("GITHUB_SHA", ""),
            commit_message=head_commit.get("message", ""),
            **common,
        )

    if kind == EventKind.PULL_REQUEST:
        pull_request = payload.get("pull_request") or {}
        head = pull_request.get("head") or {}
        number = payload.get("number") or pull_request.get("number")
        return TriggerEvent(
            ref=ref,
            commit_sha=head.get("sha") or env.get("GITHUB_SHA", ""),
            pr_number=int(number) if number else None,
            pr_action=payload.get("action"),
            **common,
        )

    inputs = payload.get("inputs") or {}
    requested = str(inputs.get("action", "")).strip().lower() == "destroy"
    requested = requested or str(inputs.get("destroy", "")).strip().lower() in TRUTHY
    return TriggerEvent(
        ref=payload.get("ref") or ref,
        commit_sha=env.get("GITHUB_SHA", ""),
        destroy_requested=requested or config.destroy_requested,
        **common,
    )


def load_event(config: GateConfig, event_name: Optional[str] = None,
               event_path: Optional[str] = None, destroy: bool = False) -> TriggerEvent:
    """Load the trigger event for the current run, applying CLI overrides"""
    name = event_name or config.event_name
    payload = load_payload(event_path or config.event_path)
    event = event_from_payload(name, payload, config)
    if destroy and event.kind == EventKind.MANUAL and not event.destroy_requested:
        event = replace(event, destroy_requested=True)
    logger.info(
        "Loaded %s event for %s at %s (actor: %s)",
        event.kind.value, event.ref or "<no ref>", event.commit_sha[:12] or "<no sha>", event.actor or "<unknown>",
    )
    return event
