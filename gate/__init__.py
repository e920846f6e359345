"""
Deployment gate for the EKS stack
Decides per trigger event whether to lint, plan, apply or destroy, and drives Pulumi accordingly
"""

from .classify import classify
from .models import Action, EventKind, GateDecision, TriggerEvent
from .pipeline import DeploymentGate

__all__ = [
    "classify",
    "Action",
    "EventKind",
    "GateDecision",
    "TriggerEvent",
    "DeploymentGate",
]
