"""
EKS Environment
VPC with public subnets and a managed EKS cluster, deployed by the gate in gate/
"""
import pulumi
from infra.config import get_config
from infra.network import create_network
from infra.cluster import create_cluster

config = get_config()

# 1. Network infrastructure
network = create_network(
    cluster_name=config.cluster_name,
    vpc_cidr=config.vpc_cidr,
    public_subnet_cidrs=config.public_subnet_cidrs,
    availability_zones=config.availability_zones,
    tags=config.common_tags)

# 2. EKS Cluster
cluster_info = create_cluster(
    network,
    cluster_name=config.cluster_name,
    cluster_version=config.cluster_version,
    node_instance_types=config.node_instance_types,
    node_desired_size=config.node_desired_size,
    node_min_size=config.node_min_size,
    node_max_size=config.node_max_size,
    node_disk_size=config.node_disk_size,
    capacity_type=config.capacity_type,
    enabled_log_types=config.cluster_enabled_log_types,
    ci_role_arn=config.ci_role_arn,
    tags=config.common_tags)

if not config.ci_role_arn:
    pulumi.log.warn("github_actions_role_arn is not set; the deployment role gets no cluster access entry")

# Exports
pulumi.export("cluster_name", cluster_info["cluster_name"])
pulumi.export("cluster_endpoint", cluster_info["cluster_endpoint"])
pulumi.export("vpc_id", network["vpc_id"])
pulumi.export("subnet_ids", network["subnet_ids"])
pulumi.export("kubeconfig_command",
    pulumi.Output.concat(
        f"aws eks update-kubeconfig --region {config.aws_region} --name ",
        cluster_info["cluster_name"]
    ))
