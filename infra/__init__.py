"""
Resource declarations for the EKS stack
Network and cluster builders used by the Pulumi program in __main__.py
"""

from .network import create_network
from .cluster import create_cluster

__all__ = [
    "create_network",
    "create_cluster",
]
