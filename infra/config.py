"""
Configuration management for the EKS stack
Reads Pulumi stack configuration; node and network settings are grouped objects

Example Pulumi.<stack>.yaml:
  eks-environment:nodes:
    instance_types: [t3.large]
    desired_size: 2
    spot: true
  eks-environment:network:
    vpc_cidr: 10.0.0.0/16
    public_subnet_cidrs: [10.0.0.0/22, 10.0.4.0/22]
"""

import pulumi
from typing import Any, Dict, List

DEFAULT_NODES = {
    "instance_types": ["t3.medium"],
    "desired_size": 2,
    "min_size": 1,
    "max_size": 3,
    "disk_size": 20,
    "spot": False,
}
DEFAULT_NETWORK = {
    "vpc_cidr": "10.0.0.0/16",
    "public_subnet_cidrs": ["10.0.0.0/22", "10.0.4.0/22"],
    "availability_zones": [],
}


def _merged(config: pulumi.Config, key: str, defaults: Dict[str, Any]) -> Dict[str, Any]:
    return {**defaults, **(config.get_object(key) or {})}


class Config:
    """Centralized configuration for the network and cluster declarations"""

    def __init__(self, config: pulumi.Config = None):
        self.config = config or pulumi.Config()
        self.aws_region = pulumi.Config("aws").get("region") or "af-south-1"

        # Cluster
        self.cluster_name = self.config.get("cluster_name") or "builder-space"
        self.cluster_version = self.config.get("cluster_version") or "1.32"
        self.cluster_enabled_log_types = (self.config.get_object("log_types")
                                          or ["api", "audit", "authenticator"])
        # Role assumed by the deployment gate; granted cluster admin
        self.ci_role_arn = self.config.get("github_actions_role_arn") or ""

        # Managed node group
        nodes = _merged(self.config, "nodes", DEFAULT_NODES)
        self.node_instance_types = list(nodes["instance_types"])
        self.node_desired_size = int(nodes["desired_size"])
        self.node_min_size = int(nodes["min_size"])
        self.node_max_size = int(nodes["max_size"])
        self.node_disk_size = int(nodes["disk_size"])
        self.spot = bool(nodes["spot"])

        # Network
        network = _merged(self.config, "network", DEFAULT_NETWORK)
        self.vpc_cidr = network["vpc_cidr"]
        self.public_subnet_cidrs = list(network["public_subnet_cidrs"])
        self._zones = list(network["availability_zones"])

        self.extra_tags = self.config.get_object("tags") or {}

    @property
    def common_tags(self) -> Dict[str, str]:
        """Tags applied to every resource"""
        return {
            "Cluster": self.cluster_name,
            "Environment": pulumi.get_stack(),
            "ManagedBy": "pulumi",
            **self.extra_tags,
        }

    @property
    def capacity_type(self) -> str:
        return "SPOT" if self.spot else "ON_DEMAND"

    @property
    def availability_zones(self) -> List[str]:
        """One zone per public subnet; derived from the region unless configured"""
        if self._zones:
            return self._zones
        return [f"{self.aws_region}{suffix}" for suffix in "abcdef"[:len(self.public_subnet_cidrs)]]


def get_config() -> Config:
    """Get the configuration instance for the current stack"""
    return Config()
